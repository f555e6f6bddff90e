"""Flow registry and active-flow resolution."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .types import ActiveFlowContext, FlowDefinition, NavigationEntry, Transition


class FlowRegistry:
    """Named step sequences, in registration order."""

    def __init__(self, flows: Iterable[FlowDefinition] = ()) -> None:
        self._flows: Dict[str, FlowDefinition] = {}
        for flow in flows:
            self.register(flow)

    def __contains__(self, name: object) -> bool:
        return name in self._flows

    def register(self, flow: FlowDefinition) -> None:
        self._flows[flow.name] = flow

    def get(self, name: str) -> Optional[FlowDefinition]:
        return self._flows.get(name)

    def names(self) -> List[str]:
        return list(self._flows)

    def flow_for_page(
        self, page: Optional[str], prefer: Optional[str] = None
    ) -> Optional[FlowDefinition]:
        """Return the flow that owns ``page``; ``prefer`` wins when several do."""
        if page is None:
            return None
        if prefer is not None:
            preferred = self._flows.get(prefer)
            if preferred is not None and page in preferred:
                return preferred
        for flow in self._flows.values():
            if page in flow:
                return flow
        return None


def resolve_flow_context(
    page: Optional[str],
    registry: FlowRegistry,
    previous: Optional[ActiveFlowContext],
    from_page: Optional[str],
    transition: Transition,
    history: Sequence[NavigationEntry] = (),
    index: int = -1,
) -> Optional[ActiveFlowContext]:
    """Derive the active flow for ``page``.

    Staying inside the previous flow only moves the step index and keeps the
    recorded entry page. Entering a flow by push records ``from_page`` as the
    entry page. Entering one by back records the page just below the run of
    flow steps ending at ``history[index]``. Replace and restore leave no safe
    exit point. Pages outside every flow clear the context.
    """
    previous_name = previous.flow_name if previous else None
    flow = registry.flow_for_page(page, prefer=previous_name)
    if flow is None:
        return None

    step_index = flow.index_of(page)
    if previous is not None and previous.flow_name == flow.name:
        return ActiveFlowContext(
            flow_name=flow.name,
            steps=flow.steps,
            step_index=step_index,
            entry_page_id=previous.entry_page_id,
        )

    if transition is Transition.PUSH:
        entry_page_id = from_page
    elif transition is Transition.BACK:
        entry_page_id = _page_below_flow(flow, history, index)
    else:
        entry_page_id = None
    if entry_page_id is not None and entry_page_id in flow:
        entry_page_id = None
    return ActiveFlowContext(
        flow_name=flow.name,
        steps=flow.steps,
        step_index=step_index,
        entry_page_id=entry_page_id,
    )


def _page_below_flow(
    flow: FlowDefinition, history: Sequence[NavigationEntry], index: int
) -> Optional[str]:
    idx = min(index, len(history) - 1)
    while idx >= 0 and history[idx].route in flow:
        idx -= 1
    return history[idx].route if idx >= 0 else None
