from linkpulse.controller.reducer import transition
from linkpulse.controller.runtime import ViewStateController
from linkpulse.controller.state import (
    BookmarkRecord,
    FormDraft,
    Identity,
    Panel,
    ViewState,
)

__all__ = [
    "BookmarkRecord",
    "FormDraft",
    "Identity",
    "Panel",
    "ViewState",
    "ViewStateController",
    "transition",
]
