"""Products page: rate matrix per product category with in-place rate editing.

Features:
  - Tier/product matrix with merged fee, revert, defer and rolled-months cells
  - Bridging and fusion LTV-bracket tables with a residential/commercial tab
  - Click-to-edit rate cells (operators with edit authority only)
"""

import asyncio
import logging

import dash
from dash import ALL, Input, Output, State, callback, dcc, html, no_update

from src.config import settings
from src.data.matrix_loader import RateMatrixLoader
from src.data.rates_client import RatesClient
from src.engine.edit_session import EditSessionController
from src.engine.merge import RenderedCell, render_matrix
from src.engine.resolver import category_scope
from src.models.edit import EditStatus
from src.models.matrix import RateMatrix
from src.models.rates import Category, Layout, PropertyTab

logger = logging.getLogger(__name__)

dash.register_page(__name__, path="/", name="Products")

CATEGORY_LABELS = {
    Category.SPECIALIST: "Specialist",
    Category.CORE: "Core",
    Category.COMMERCIAL: "Commercial",
    Category.SEMI_COMMERCIAL: "Semi-Commercial",
    Category.BRIDGING_VARIABLE: "Bridging Variable",
    Category.BRIDGING_FIXED: "Bridging Fixed",
    Category.FUSION: "Fusion",
}

EMPTY_MESSAGE = "No rates available for this product category"

HIDDEN = {"display": "none"}
EDIT_PANEL_STYLE = {
    "display": "flex",
    "gap": "0.5rem",
    "alignItems": "center",
    "padding": "0.75rem",
    "marginBottom": "1rem",
    "backgroundColor": "#f4f6f9",
    "border": "1px solid #d8dde6",
}

CELL_STYLE = {"padding": "0.4rem 0.75rem", "textAlign": "center", "border": "1px solid #d8dde6"}
LABEL_STYLE = {**CELL_STYLE, "textAlign": "left", "fontWeight": "600", "backgroundColor": "#f4f6f9"}
HEADER_STYLE = {**CELL_STYLE, "backgroundColor": "#1a1a2e", "color": "white"}
EDIT_BTN_STYLE = {
    "background": "none",
    "border": "none",
    "cursor": "pointer",
    "color": "#0070d2",
    "fontSize": "0.95rem",
}

_client = RatesClient()
loader = RateMatrixLoader(_client)
controller = EditSessionController(_client)

# Editable cells of the last rendered matrix, keyed by button index
_editable_cells: dict[str, RenderedCell] = {}


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

layout = html.Div([
    html.H2("Products"),

    html.Div([
        dcc.Tabs(
            id="category-tabs",
            value=Category.SPECIALIST.value,
            children=[dcc.Tab(label=label, value=c.value) for c, label in CATEGORY_LABELS.items()],
        ),
        dcc.RadioItems(
            id="property-tab",
            options=[
                {"label": "Residential", "value": PropertyTab.RESIDENTIAL.value},
                {"label": "Commercial", "value": PropertyTab.COMMERCIAL.value},
            ],
            value=PropertyTab.RESIDENTIAL.value,
            inline=True,
            style={"margin": "0.75rem 0"},
        ),
    ]),

    # Bumped after every successful save to force a full refetch
    dcc.Store(id="matrix-version", data=0),

    html.Div([
        html.Span(id="edit-label", style={"fontWeight": "600"}),
        dcc.Input(id="edit-input", type="text", debounce=False, style={"width": "120px"}),
        html.Button("Save", id="edit-save", n_clicks=0),
        html.Button("Cancel", id="edit-cancel", n_clicks=0),
    ], id="edit-panel", style=HIDDEN),
    html.Div(id="edit-message", style={"marginBottom": "1rem"}),

    dcc.Loading(html.Div(id="matrix-container")),
])


# ---------------------------------------------------------------------------
# Table rendering
# ---------------------------------------------------------------------------


def _cell_key(row_key: str, cell: RenderedCell) -> str:
    return f"{row_key}|{cell.tier or ''}|{cell.product or ''}"


def _render_cell(row_key: str, cell: RenderedCell, can_edit: bool):
    if can_edit and cell.editable:
        key = _cell_key(row_key, cell)
        _editable_cells[key] = cell
        content = html.Button(
            f"{cell.text} ✎",
            id={"type": "rate-cell", "index": key},
            n_clicks=0,
            title="Click to edit",
            style=EDIT_BTN_STYLE,
        )
    else:
        content = cell.text
    return html.Td(content, colSpan=cell.colspan, style=CELL_STYLE)


def _header(matrix: RateMatrix) -> html.Thead:
    if matrix.tiers:
        return html.Thead([
            html.Tr(
                [html.Th("", rowSpan=2, style=HEADER_STYLE)]
                + [html.Th(tier, colSpan=len(matrix.products), style=HEADER_STYLE) for tier in matrix.tiers]
            ),
            html.Tr([
                html.Th(product, style=HEADER_STYLE)
                for _ in matrix.tiers
                for product in matrix.products
            ]),
        ])
    return html.Thead(html.Tr(
        [html.Th("Our Products", style=HEADER_STYLE)]
        + [html.Th(product, style=HEADER_STYLE) for product in matrix.products]
    ))


def build_table(matrix: RateMatrix, can_edit: bool):
    _editable_cells.clear()
    if matrix.is_empty:
        return html.Div(EMPTY_MESSAGE, style={"textAlign": "center", "padding": "2rem"})

    body = [
        html.Tr(
            [html.Th(row.label, scope="row", style=LABEL_STYLE)]
            + [_render_cell(row.key, cell, can_edit) for cell in cells]
        )
        for row, cells in render_matrix(matrix)
    ]
    return html.Table(
        [_header(matrix), html.Tbody(body)],
        style={"borderCollapse": "collapse", "width": "100%"},
    )


# ---------------------------------------------------------------------------
# Callbacks
# ---------------------------------------------------------------------------


@callback(
    Output("property-tab", "style"),
    Input("category-tabs", "value"),
)
def toggle_property_tab(category):
    if category_scope(Category(category)).layout is Layout.TIERED:
        return HIDDEN
    return {"margin": "0.75rem 0"}


@callback(
    Output("matrix-container", "children"),
    [Input("category-tabs", "value"), Input("property-tab", "value"), Input("matrix-version", "data")],
)
def load_matrix(category, property_tab, _version):
    result = asyncio.run(loader.load(Category(category), PropertyTab(property_tab)))
    if not result.ok:
        return html.Div(f"Error: {result.message}", style={"color": "red"})
    return build_table(result.value, settings.can_edit_rates)


def _panel(message="", color="#c23934"):
    session = controller.session
    if session is None:
        return HIDDEN, "", "", html.Span(message, style={"color": color}) if message else ""
    ctx = session.context
    where = " / ".join(str(p) for p in (ctx.tier or ctx.property, ctx.product) if p)
    return (
        EDIT_PANEL_STYLE,
        session.raw_input,
        f"Edit rate ({where})",
        html.Span(message, style={"color": color}) if message else "",
    )


@callback(
    [
        Output("edit-panel", "style"),
        Output("edit-input", "value"),
        Output("edit-label", "children"),
        Output("edit-message", "children"),
        Output("matrix-version", "data"),
    ],
    [
        Input({"type": "rate-cell", "index": ALL}, "n_clicks"),
        Input("edit-save", "n_clicks"),
        Input("edit-cancel", "n_clicks"),
        Input("edit-input", "n_submit"),
    ],
    [
        State("edit-input", "value"),
        State("category-tabs", "value"),
        State("property-tab", "value"),
        State("matrix-version", "data"),
    ],
    prevent_initial_call=True,
)
def handle_edit(_cell_clicks, _save, _cancel, _submit, text, category, property_tab, version):
    triggered = dash.ctx.triggered_id
    if triggered is None or not dash.ctx.triggered[0]["value"]:
        return no_update, no_update, no_update, no_update, no_update

    if isinstance(triggered, dict):
        cell = _editable_cells.get(triggered["index"])
        if cell is None:
            return no_update, no_update, no_update, no_update, no_update
        started = controller.start(
            cell.record_id,
            "rate",
            cell.value,
            cell.context,
            can_edit=settings.can_edit_rates,
            table_name=category_scope(Category(category), PropertyTab(property_tab)).table_name,
        )
        if not started:
            return no_update, no_update, no_update, "You do not have permission to edit rates", no_update
        return (*_panel(), no_update)

    if triggered == "edit-cancel":
        controller.cancel()
        return (*_panel(), no_update)

    # Save (button or Enter)
    controller.update_input(text or "")
    result = asyncio.run(controller.save())
    if result.ok:
        return (*_panel("Rate updated successfully", color="#04844b"), (version or 0) + 1)
    if controller.status is EditStatus.IDLE:
        return (*_panel(), no_update)
    return (*_panel(result.message), no_update)

