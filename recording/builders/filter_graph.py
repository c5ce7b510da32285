"""
Filter Graph

Small intermediate representation of an FFmpeg filter graph.

A graph is a list of chains; a chain reads labeled pads, runs filters in
sequence and writes one labeled pad. Everything is built as objects and
serialized once with render(), so composition logic can be tested without
touching FFmpeg's text syntax.

    [1:v]setpts=PTS-STARTPTS,hflip[cam];[0:v][cam]overlay=10:20[out]

Here "[1:v]" is an input pad, "setpts...,hflip" the filters and "[cam]" the
output pad read by the next chain.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from config.settings import AUDIO_RESAMPLE_ASYNC


@dataclass(frozen=True)
class Filter:
    """One filter: name plus ':'-separated parameters"""

    name: str
    params: Tuple[str, ...] = ()

    def render(self) -> str:
        if not self.params:
            return self.name
        return f"{self.name}={':'.join(self.params)}"


@dataclass
class FilterChain:
    """
    Filters applied in order between input pads and one output pad.

    Input labels are either stream specifiers ("2:v", "0:a") or outputs of
    earlier chains ("screen").
    """

    inputs: List[str]
    filters: List[Filter]
    output: Optional[str] = None

    def render(self) -> str:
        pads = "".join(f"[{label}]" for label in self.inputs)
        body = ",".join(f.render() for f in self.filters)
        tail = f"[{self.output}]" if self.output else ""
        return f"{pads}{body}{tail}"


@dataclass
class FilterGraph:
    chains: List[FilterChain] = field(default_factory=list)

    def add(
        self,
        inputs: Sequence[str],
        filters: Sequence[Filter],
        output: Optional[str] = None,
    ) -> "FilterGraph":
        self.chains.append(FilterChain(list(inputs), list(filters), output))
        return self

    def validate(self) -> None:
        """
        Check that every named pad is produced before it is consumed.

        Raises:
            ValueError: On a dangling or duplicated label
        """
        produced: List[str] = []
        for chain in self.chains:
            for label in chain.inputs:
                if is_stream_specifier(label):
                    continue
                if label not in produced:
                    raise ValueError(f"Filter pad [{label}] used before it is defined")
            if chain.output:
                if chain.output in produced:
                    raise ValueError(f"Filter pad [{chain.output}] defined twice")
                produced.append(chain.output)

    def render(self) -> str:
        self.validate()
        return ";".join(chain.render() for chain in self.chains)


def is_stream_specifier(label: str) -> bool:
    """'3:v' style labels refer to an input file stream, not a chain output"""
    head, _, kind = label.partition(":")
    return head.isdigit() and kind in ("v", "a")


def video_stream(index: int) -> str:
    return f"{index}:v"


def audio_stream(index: int) -> str:
    return f"{index}:a"


def render_chain(filters: Sequence[Filter]) -> str:
    """Plain comma-joined chain, for -vf / -af"""
    return ",".join(f.render() for f in filters)


# =============================================================================
# FILTER CONSTRUCTORS
# =============================================================================


def reset_pts() -> Filter:
    """Start video timestamps at zero"""
    return Filter("setpts", ("PTS-STARTPTS",))


def scale(width: int, height: int) -> Filter:
    return Filter("scale", (str(width), str(height)))


def letterbox(width: int, height: int) -> List[Filter]:
    """Fit inside width x height keeping aspect ratio, pad the rest (centered)"""
    return [
        Filter("scale", (str(width), str(height), "force_original_aspect_ratio=decrease")),
        Filter("pad", (str(width), str(height), "(ow-iw)/2", "(oh-ih)/2")),
    ]


def hflip() -> Filter:
    return Filter("hflip")


def crop_square() -> Filter:
    """Center crop to the largest square"""
    return Filter("crop", ("'min(iw,ih)'", "'min(iw,ih)'"))


def circle_mask(radius: int) -> List[Filter]:
    """Make pixels outside the inscribed circle transparent"""
    r = radius
    return [
        Filter("format", ("yuva420p",)),
        Filter(
            "geq",
            (
                "lum='lum(X,Y)'",
                "cb='cb(X,Y)'",
                "cr='cr(X,Y)'",
                f"a='if(lte(pow(X-{r},2)+pow(Y-{r},2),pow({r},2)),255,0)'",
            ),
        ),
    ]


def overlay(x: int, y: int, shortest: bool = False) -> Filter:
    params: Tuple[str, ...] = (str(x), str(y))
    if shortest:
        params += ("shortest=1",)
    return Filter("overlay", params)


def audio_sync(offset_seconds: float = 0.0, resample_async: int = AUDIO_RESAMPLE_ASYNC) -> List[Filter]:
    """
    Audio timestamp normalization.

    Timestamps start at zero (plus offset_seconds), aresample stretches to
    follow clock drift and apad fills any gap at the end with silence.
    """
    pts = "PTS-STARTPTS"
    if offset_seconds:
        pts += f"+{offset_seconds:g}/TB"
    return [
        Filter("asetpts", (pts,)),
        Filter("aresample", (f"async={resample_async}",)),
        Filter("apad"),
    ]
