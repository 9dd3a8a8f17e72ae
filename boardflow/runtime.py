from __future__ import annotations
import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from loguru import logger
from opentelemetry import trace

from .ast import FlowAst, WindowAst
from .budget import StepBudget
from .compiler import compile_page
from .config import RuntimeConfig
from .errors import EvalError, StepLimitExceeded
from .evaluator import Evaluator, Store
from .graph_engine import Diagram
from .inputs import InputState, interpret_browser_keys
from .markers import AnnotationSurface, Diagnostics, MemoryAnnotations, Severity
from .render import MemorySurface, RenderSurface, WindowHandle
from .schemas import Element

_tracer = trace.get_tracer(__name__)

SurfaceFactory = Callable[[Element], RenderSurface]


@dataclass
class WindowRun:
    window: WindowAst
    evaluator: Evaluator
    task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return self.evaluator.done


class Runtime:
    """An interpreter session for one board host.

    Owns the variable store, the handles of running windows, the held-key
    state and one render surface per window. Create it when the host starts
    and `close()` it when the host unloads.
    """

    def __init__(self, config: Optional[RuntimeConfig] = None, surface_factory: SurfaceFactory = MemorySurface,
                 annotations: Optional[AnnotationSurface] = None):
        self.config = config or RuntimeConfig()
        self.surface_factory = surface_factory
        self.annotations = annotations if annotations is not None else MemoryAnnotations()
        self.diagnostics = Diagnostics(self.annotations)
        self.store: Store = {}
        self.runs: Dict[str, WindowRun] = {}
        self.surfaces: Dict[str, RenderSurface] = {}
        self.inputs = InputState()
        self._previous_selection: Set[str] = set()

    # ---------- Compilation ----------
    def compile(self, diagram: Diagram) -> List[WindowAst]:
        budget = StepBudget(self.config.step_limit)
        try:
            return compile_page(diagram, self.diagnostics, budget)
        except EvalError as e:
            self.diagnostics.error(e.original_message, e.element)
            return []

    # ---------- Scheduling ----------
    def surface_for(self, window: WindowAst) -> RenderSurface:
        surface = self.surfaces.get(window.at.id)
        if surface is None:
            surface = self.surfaces[window.at.id] = self.surface_factory(window.at)
        return surface

    def is_running(self, window: WindowAst) -> bool:
        return window.at.id in self.runs

    async def play(self, window: WindowAst) -> WindowRun:
        self.diagnostics.clear(Severity.WARNING)
        self.diagnostics.clear(Severity.ERROR)
        surface = self.surface_for(window)
        surface.clear()
        await self.stop(window)

        evaluator = Evaluator(self.store, WindowHandle(surface), surface, self.inputs, self.diagnostics, self.config)
        run = WindowRun(window=window, evaluator=evaluator)
        self.runs[window.at.id] = run
        logger.info("[window] start '{}'", window.name)

        if window.setup is not None:
            with _tracer.start_as_current_span(f"window:{window.name}:setup"):
                ok = await self._run_guarded(run, window.setup, "setup")
            if not ok:
                return run

        if not run.done:
            run.task = asyncio.create_task(self._tick_loop(run), name=f"boardflow-window-{window.at.id}")
        return run

    async def stop(self, window: WindowAst) -> None:
        self.surface_for(window).clear()
        run = self.runs.pop(window.at.id, None)
        if run is not None:
            await self._cancel(run)
            logger.info("[window] stop '{}'", window.name)

    async def close(self) -> None:
        for run in list(self.runs.values()):
            await self.stop(run.window)

    async def _cancel(self, run: WindowRun) -> None:
        run.evaluator.done = True
        task = run.task
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _tick_loop(self, run: WindowRun) -> None:
        window = run.window
        interval = self.config.tick_interval
        while not run.done:
            await asyncio.sleep(interval)
            if run.done or window.loop is None:
                continue
            with _tracer.start_as_current_span(f"window:{window.name}:tick"):
                ok = await self._run_guarded(run, window.loop, "loop")
            if not ok:
                return

    async def _run_guarded(self, run: WindowRun, flow: FlowAst, phase: str) -> bool:
        """Run one flow with a fresh budget.

        A fatal `EvalError` is annotated on the element that raised it and
        stops the window. Any other exception comes from the host surface or
        from a bug; the window is annotated and stopped all the same and the
        exception propagates to the caller.
        """
        budget = StepBudget(self.config.step_limit)
        try:
            try:
                await run.evaluator.run_flow(flow, budget)
            except RecursionError:
                raise StepLimitExceeded(flow.at) from None
        except EvalError as e:
            logger.error("[window] error in {} of '{}': {}", phase, run.window.name, e)
            self.diagnostics.error(e.original_message, e.element)
            await self._retire(run)
            return False
        except Exception as e:
            logger.exception("[window] crash in {} of '{}'", phase, run.window.name)
            self.diagnostics.error(f"internal error: {e!r}", flow.at)
            await self._retire(run)
            raise
        return True

    async def _retire(self, run: WindowRun) -> None:
        if self.runs.get(run.window.at.id) is run:
            await self.stop(run.window)
        else:
            run.evaluator.done = True

    # ---------- Host events ----------
    async def handle_selection(self, diagram: Diagram,
                               selected_ids: Iterable[str]) -> Tuple[List[WindowAst], List[WindowAst]]:
        """Start/stop windows whose trigger buttons were just selected.

        The board is recompiled on every selection change. A change that
        newly selects more than one element is ambiguous and ignored.
        """
        windows = self.compile(diagram)

        selected = set(selected_ids)
        new = selected - self._previous_selection
        self._previous_selection = selected
        if len(new) > 1:
            return [], []

        to_play = [w for w in windows if any(b.id in new for b in w.play_buttons)]
        to_stop = [w for w in windows if any(b.id in new for b in w.stop_buttons)]

        for window in to_play:
            await self.play(window)
        for window in to_stop:
            await self.stop(window)
        return to_play, to_stop

    def update_pressed_keys(self, browser_keys: Iterable[str]) -> bool:
        return self.inputs.update(interpret_browser_keys(browser_keys))
