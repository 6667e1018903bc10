"""Reclassification of the ecosystem-type raster into ten main types.

The source raster carries detailed ecosystem codes grouped in hundreds
(100s forest, 200s mountain, ...). Each cell is mapped to one of ten main
types by an ordered list of rules; the first rule that matches wins.
"""

from dataclasses import dataclass

import numpy as np
import structlog
import xarray as xr

from trailcov.exceptions import UnclassifiedValueError

logger = structlog.get_logger()

ECOTYPE_BAND = "ecoTypes"

UNMATCHED_POLICIES = ("raise", "nodata", "passthrough")


@dataclass(frozen=True)
class ReclassRule:
    """Map a range (open interval) or an explicit set of codes to one output code."""

    code: int
    lower: float | None = None
    upper: float | None = None
    values: tuple[float, ...] = ()
    label: str = ""

    def matches(self, values: np.ndarray) -> np.ndarray:
        """Boolean mask of cells this rule applies to."""
        if self.values:
            return np.isin(values, self.values)
        mask = np.ones(values.shape, dtype=bool)
        if self.lower is not None:
            mask &= values > self.lower
        if self.upper is not None:
            mask &= values < self.upper
        return mask

    def describe(self) -> str:
        if self.values:
            return " or ".join(f"== {v:g}" for v in self.values)
        parts = []
        if self.lower is not None:
            parts.append(f"> {self.lower:g}")
        if self.upper is not None:
            parts.append(f"< {self.upper:g}")
        return " and ".join(parts)


ECOSYSTEM_RULES: tuple[ReclassRule, ...] = (
    ReclassRule(1, 100, 200, label="Forest"),
    ReclassRule(2, 200, 300, label="Mountain"),
    ReclassRule(3, 300, 400, label="Tundra"),
    ReclassRule(4, 400, 500, label="Wetland"),
    ReclassRule(5, 500, 600, label="Semi-natural"),
    ReclassRule(6, 600, 700, label="Open lowland"),
    ReclassRule(7, 700, 800, label="Marine"),
    ReclassRule(8, values=(801, 802), label="Freshwater"),
    ReclassRule(9, 802, 840, label="Cropland"),
    ReclassRule(10, lower=840, label="Urban"),
)

ECOSYSTEM_NAMES: dict[int, str] = {rule.code: rule.label for rule in ECOSYSTEM_RULES}

ECOSYSTEM_PALETTE: list[str] = [
    "#00911d",  # 1
    "#bcbcbc",  # 2
    "#b4ff8e",  # 3
    "#38ffe7",  # 4
    "#f2e341",  # 5
    "#eb56ff",  # 6
    "#2163ff",  # 7
    "#19b8f7",  # 8
    "#f28f84",  # 9
    "#ff0000",  # 10
]


def reclassify_array(
    values: np.ndarray,
    rules: tuple[ReclassRule, ...] = ECOSYSTEM_RULES,
    unmatched: str = "raise",
) -> np.ndarray:
    """Apply ordered rules to an array of codes.

    Args:
        values: Input codes; NaN marks no-data.
        rules: Ordered rules, first match wins.
        unmatched: What to do with valid codes no rule matches:
            ``"raise"``, ``"nodata"`` (NaN) or ``"passthrough"`` (keep code).

    Returns:
        Float32 array of output codes, NaN where no-data.

    Raises:
        UnclassifiedValueError: If ``unmatched="raise"`` and any valid code
            is not covered.
    """
    if unmatched not in UNMATCHED_POLICIES:
        raise ValueError(f"Unknown unmatched policy '{unmatched}', expected one of {UNMATCHED_POLICIES}")

    values = np.asarray(values, dtype=np.float64)
    valid = ~np.isnan(values)
    assigned = np.zeros(values.shape, dtype=bool)
    out = np.full(values.shape, np.nan, dtype=np.float32)

    for rule in rules:
        hit = rule.matches(values) & valid & ~assigned
        out[hit] = rule.code
        assigned |= hit

    leftover = valid & ~assigned
    if leftover.any():
        codes = sorted(float(v) for v in np.unique(values[leftover]))
        if unmatched == "raise":
            raise UnclassifiedValueError(codes)
        logger.warning(
            "Ecosystem codes without a rule",
            policy=unmatched,
            codes=codes[:10],
            pixels=int(leftover.sum()),
        )
        if unmatched == "passthrough":
            out[leftover] = values[leftover]

    return out


def reclassify(
    raster: xr.DataArray,
    rules: tuple[ReclassRule, ...] = ECOSYSTEM_RULES,
    unmatched: str = "raise",
) -> xr.DataArray:
    """Reclassify an ecosystem-type raster.

    Args:
        raster: Single-band raster of detailed ecosystem codes.
        rules: Ordered rules, first match wins.
        unmatched: Policy for codes not covered by any rule.

    Returns:
        ``ecoTypes`` DataArray with codes 1-10 on the input grid.
    """
    logger.info("Reclassifying ecosystem types", rules=len(rules), unmatched=unmatched)
    codes = reclassify_array(raster.values, rules, unmatched)
    result = raster.copy(data=codes)
    result.attrs.pop("_FillValue", None)
    result = result.rio.write_nodata(np.nan)
    return result.rename(ECOTYPE_BAND)
