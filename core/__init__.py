"""Core (UI-agnostic) dashboard logic.

This package contains:
- spreadsheet sources (workbook / demo sheets -> TabularDataset)
- view transforms (sample / aggregate / all) and the trendline fit
- geometric layouts for stream, spiral, heatmap and treemap charts
- the chart registry and chart helpers (Altair -> Vega-Lite spec dict)
- in-memory identity and dashboard stores
"""
