"""Hypothesis strategies for property-based testing."""

from pathlib import Path

from hypothesis import strategies as st

from dvmux.models.frame_rate import CustomFrameRate, FrameRateId
from dvmux.models.job import JobRequest, JobState
from dvmux.models.stage import StageKind


@st.composite
def generate_custom_frame_rate(draw):
    """Generate a valid custom rational frame rate."""
    numerator = draw(st.integers(min_value=1, max_value=240_000))
    denominator = draw(st.integers(min_value=1, max_value=1001))
    return CustomFrameRate(numerator=numerator, denominator=denominator)


@st.composite
def generate_frame_rate(draw):
    """Generate any valid frame rate, standard or custom."""
    return draw(st.one_of(st.sampled_from(list(FrameRateId)), generate_custom_frame_rate()))


@st.composite
def generate_file_stem(draw):
    return draw(
        st.text(
            alphabet="abcdefghijklmnopqrstuvwxyz0123456789_-. ",
            min_size=1,
            max_size=40,
        ).filter(lambda s: s.strip(". ") and not s.endswith("."))
    )


@st.composite
def generate_job_request(draw):
    """Generate a JobRequest; paths are not expected to exist."""
    stem = draw(generate_file_stem())
    return JobRequest(
        input_path=Path("/media") / f"{stem}.mkv",
        output_dir=Path("/out"),
        include_subtitles=draw(st.booleans()),
        frame_rate=draw(st.one_of(st.none(), generate_frame_rate())),
        keep_temp=draw(st.booleans()),
    )


@st.composite
def generate_state_path(draw):
    """Generate a sequence of requested state changes, legal or not."""
    return draw(st.lists(st.sampled_from(list(JobState)), min_size=1, max_size=8))


@st.composite
def generate_progress_updates(draw):
    """Generate (stage, fraction) updates, including out-of-range fractions."""
    return draw(
        st.lists(
            st.tuples(
                st.sampled_from(list(StageKind)),
                st.floats(min_value=-0.5, max_value=1.5, allow_nan=False),
            ),
            max_size=40,
        )
    )
