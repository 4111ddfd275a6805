"""Processing modes and the parameter table behind them.

Each mode bundles the raster steps applied before vectorization, the
vectorization strategy, and the strategy's own parameters. Tracer thresholds
are stored as a 0-1 ``blacklevel``; values that come from the 0-255 scale are
divided by 255 here, and nowhere else.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from pipeline_errors import MalformedInputError


class ProcessingMode(str, Enum):
    SIMPLE = "simple"
    ENHANCED = "enhanced"
    HIGH_QUALITY = "high-quality"
    CLASSIC = "classic"
    VECTOR_SERVICE = "vector-service"
    COLOR_EMBED = "color-embed"
    RASTER_EMBED = "raster-embed"
    INVERTED = "inverted"


class Strategy(str, Enum):
    TRACE = "trace"
    REMOTE = "remote"
    EMBED = "embed"


WHITE = (255, 255, 255)

# Stands in for the configured brand color in a raster step
BRAND = "brand"


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class Flatten:
    background: object = WHITE


@dataclass(frozen=True)
class Greyscale:
    pass


@dataclass(frozen=True)
class Normalize:
    pass


@dataclass(frozen=True)
class Threshold:
    cutoff: int = 128


@dataclass(frozen=True)
class Tint:
    color: object = BRAND


@dataclass(frozen=True)
class TraceParameters:
    blacklevel: float = 0.5
    black_on_white: bool = True
    turdsize: int = 2
    alphamax: float = 1.0
    opticurve: bool = True
    opttolerance: float = 0.2


@dataclass(frozen=True)
class RemoteParameters:
    mode: str = "production"
    max_colors: int = 2
    min_area: int = 5
    simplify: int = 3
    anti_aliased: str = "auto"


@dataclass(frozen=True)
class EmbedParameters:
    colorize: bool = False


@dataclass(frozen=True)
class VectorizationParameters:
    mode: ProcessingMode
    steps: Tuple[object, ...]
    strategy: Strategy
    trace: Optional[TraceParameters] = None
    remote: Optional[RemoteParameters] = None
    embed: Optional[EmbedParameters] = None
    note: Optional[str] = field(default=None, compare=False)

    @property
    def needs_remote_vectorizer(self):
        return self.strategy is Strategy.REMOTE

    @property
    def is_vector(self):
        return self.strategy is not Strategy.EMBED


EMBED_NOTE = (
    "This is a raster image embedded in SVG. For true vector conversion, "
    "use one of the tracing modes or the vector-service mode."
)

MODE_PARAMETERS = {
    ProcessingMode.SIMPLE: VectorizationParameters(
        mode=ProcessingMode.SIMPLE,
        steps=(Resize(50, 50),),
        strategy=Strategy.TRACE,
        trace=TraceParameters(blacklevel=0.5, turdsize=2, alphamax=1.0, opttolerance=0.2),
    ),
    ProcessingMode.ENHANCED: VectorizationParameters(
        mode=ProcessingMode.ENHANCED,
        steps=(Resize(300, 300), Greyscale(), Normalize(), Threshold(128)),
        strategy=Strategy.TRACE,
        trace=TraceParameters(blacklevel=0.5, turdsize=4, alphamax=1.334, opttolerance=0.2),
    ),
    ProcessingMode.HIGH_QUALITY: VectorizationParameters(
        mode=ProcessingMode.HIGH_QUALITY,
        steps=(Resize(300, 300), Flatten(WHITE), Greyscale(), Normalize(), Threshold(140)),
        strategy=Strategy.TRACE,
        trace=TraceParameters(blacklevel=128 / 255, turdsize=2, alphamax=1.0, opttolerance=0.2),
    ),
    ProcessingMode.CLASSIC: VectorizationParameters(
        mode=ProcessingMode.CLASSIC,
        steps=(Resize(200, 200), Flatten(WHITE), Greyscale(), Threshold(128)),
        strategy=Strategy.TRACE,
        trace=TraceParameters(blacklevel=0.5, turdsize=10, alphamax=1.0, opttolerance=0.2),
    ),
    ProcessingMode.VECTOR_SERVICE: VectorizationParameters(
        mode=ProcessingMode.VECTOR_SERVICE,
        steps=(Resize(50, 50),),
        strategy=Strategy.REMOTE,
        remote=RemoteParameters(),
    ),
    ProcessingMode.COLOR_EMBED: VectorizationParameters(
        mode=ProcessingMode.COLOR_EMBED,
        steps=(
            Resize(200, 200),
            Flatten(WHITE),
            Tint(BRAND),
            Resize(50, 50),
        ),
        strategy=Strategy.EMBED,
        embed=EmbedParameters(colorize=True),
        note=EMBED_NOTE,
    ),
    ProcessingMode.RASTER_EMBED: VectorizationParameters(
        mode=ProcessingMode.RASTER_EMBED,
        steps=(Resize(50, 50), Flatten(BRAND)),
        strategy=Strategy.EMBED,
        embed=EmbedParameters(colorize=False),
        note=EMBED_NOTE,
    ),
    # Light artwork on a dark or transparent ground: bright pixels are traced
    ProcessingMode.INVERTED: VectorizationParameters(
        mode=ProcessingMode.INVERTED,
        steps=(Resize(200, 200), Greyscale(), Normalize()),
        strategy=Strategy.TRACE,
        trace=TraceParameters(blacklevel=100 / 255, black_on_white=False, turdsize=2,
                              alphamax=1.0, opttolerance=0.2),
    ),
}

# Modes a legacy route accepts under its own historical names
ROUTE_MODE_ALIASES = {
    ProcessingMode.ENHANCED: {"simple": ProcessingMode.INVERTED},
}

MODE_ALIASES = {
    "hq": ProcessingMode.HIGH_QUALITY,
    "high_quality": ProcessingMode.HIGH_QUALITY,
    "potrace": ProcessingMode.CLASSIC,
    "vector": ProcessingMode.VECTOR_SERVICE,
    "vectorizer": ProcessingMode.VECTOR_SERVICE,
    "color": ProcessingMode.COLOR_EMBED,
    "embed": ProcessingMode.RASTER_EMBED,
    "light": ProcessingMode.INVERTED,
}


def parse_mode(value):
    """Resolve a request's ``mode`` string to a ProcessingMode"""
    if isinstance(value, ProcessingMode):
        return value
    if not isinstance(value, str) or not value.strip():
        raise MalformedInputError(f"Unknown processing mode: {value!r}")

    key = value.strip().lower()
    if key in MODE_ALIASES:
        return MODE_ALIASES[key]
    try:
        return ProcessingMode(key)
    except ValueError:
        choices = ", ".join(m.value for m in ProcessingMode)
        raise MalformedInputError(f"Unknown processing mode: {value!r}. Expected one of: {choices}")


def parameters_for(mode):
    return MODE_PARAMETERS[parse_mode(mode)]
