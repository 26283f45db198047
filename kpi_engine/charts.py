from __future__ import annotations

from typing import Any, Dict, Sequence

import altair as alt

from kpi_engine.periods import Period, column_palette

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def period_color_scale(periods: Sequence[Period]) -> alt.Scale:
    """Colour scale mapping each period label to its column palette."""
    labels = [p.label for p in periods]
    return alt.Scale(domain=labels, range=[column_palette(p).primary for p in periods])
