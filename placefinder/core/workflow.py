from __future__ import annotations

from typing import List

from .workflow_types import SearchContext


class WorkflowRunner:
    def __init__(self, nodes: List):
        self.nodes = nodes

    async def run(self, ctx: SearchContext) -> SearchContext:
        for node in self.nodes:
            ctx = await node.run(ctx)
            if ctx.done:
                break
        return ctx
