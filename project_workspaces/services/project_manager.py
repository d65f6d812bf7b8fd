"""
ProjectManager: project activation, close and exit orchestration.

Activation finds or launches the project's Chrome and VS Code windows, moves
them into ``ap-<id>``, waits until AeroSpace reports them there, focuses the
workspace and the IDE, then positions both windows. Every wait is a bounded
poll on an injectable clock and sleep, so the whole flow runs deterministically
under test.

Both windows must exist before either is moved: moving Chrome before VS Code
has launched can make VS Code open on a different macOS Space.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Tuple

from ..config import load_config
from ..constants import BROWSER_BUNDLE_ID, IDE_BUNDLE_ID, DataPaths, window_token
from ..errors import (
    AeroSpaceError,
    CommandError,
    ConfigError,
    LaunchError,
    ProjectError,
    ProjectErrorKind,
    ScreenDetectionError,
    StoreError,
    WindowPositionError,
)
from ..models import (
    ActivationOutcome,
    AppConfig,
    CapturedFocus,
    ChromeTabSnapshot,
    CloseOutcome,
    ManagedWindow,
    Point,
    ProjectConfig,
    ProjectWorkspaceState,
    SavedWindowFrames,
    ScreenMode,
    WindowLayout,
    WindowPositionResult,
)
from .aerospace_client import AeroSpaceClient
from .chrome_tabs import ChromeTabCapture, ChromeTabResolver, ChromeTabStore, GitRemoteResolver
from .circuit_breaker import shared_circuit_breaker
from .command_runner import CommandRunner
from .focus_stack import FocusStack
from .launchers import AgentLayerVSCodeLauncher, ChromeLauncher, VSCodeLauncher
from .layout_engine import (
    FALLBACK_PHYSICAL_WIDTH_INCHES,
    cascade_offset_points,
    clamp_to_screen,
    compute_layout,
)
from .project_sorter import sort_projects
from .state_stores import FocusHistoryStore, RecencyStore, WindowPositionStore
from .vscode_settings import VSCodeSettingsManager
from .workspace_routing import is_project_workspace, project_id_from_workspace, workspace_name_for_project

logger = logging.getLogger(__name__)

WINDOW_POLL_TIMEOUT_SECONDS = 10.0
WINDOW_POLL_INTERVAL_SECONDS = 0.1

TAB_RESTORE_WARNING = "Chrome launched without tabs (tab restore failed)"


class ProjectManager:
    """Activates, closes and exits project workspaces.

    One instance owns the loaded config, the focus stack and recency; callers
    serialize operations on it. The AeroSpace client and its circuit breaker
    may be shared across instances.

    Positioning is enabled only when ``window_positioner``, ``screen_detector``
    and ``position_store`` are all provided. With ``focus_history`` the focus
    stack is loaded at construction and saved after every push and restore,
    so a later process can still return to the pre-activation window.

    AeroSpace, launcher and file calls made by the async activation flow run
    in worker threads; the event loop stays free while they block.
    """

    def __init__(
        self,
        aerospace: AeroSpaceClient,
        ide_launcher,
        agent_layer_launcher,
        chrome_launcher,
        tab_store: ChromeTabStore,
        tab_capture: ChromeTabCapture,
        git_remote: GitRemoteResolver,
        recency: RecencyStore,
        config_loader: Callable[[], AppConfig],
        window_positioner=None,
        screen_detector=None,
        position_store: Optional[WindowPositionStore] = None,
        focus_history: Optional[FocusHistoryStore] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        poll_timeout: float = WINDOW_POLL_TIMEOUT_SECONDS,
        poll_interval: float = WINDOW_POLL_INTERVAL_SECONDS,
    ):
        self.aerospace = aerospace
        self.ide_launcher = ide_launcher
        self.agent_layer_launcher = agent_layer_launcher
        self.chrome_launcher = chrome_launcher
        self.tab_store = tab_store
        self.tab_capture = tab_capture
        self.git_remote = git_remote
        self.recency = recency
        self.config_loader = config_loader
        self.window_positioner = window_positioner
        self.screen_detector = screen_detector
        self.position_store = position_store
        self.focus_history = focus_history
        self._sleep = sleep
        self._clock = clock
        self.poll_timeout = poll_timeout
        self.poll_interval = poll_interval

        self.config: Optional[AppConfig] = None
        self.focus_stack = FocusStack()
        self._load_focus_history()
        self.recency.load()

    @classmethod
    def create_default(
        cls,
        paths: Optional[DataPaths] = None,
        window_positioner=None,
        screen_detector=None,
    ) -> "ProjectManager":
        """Wire production dependencies.

        Args:
            paths: Filesystem layout (default: rooted at the user's home)
            window_positioner: ``AXWindowPositioner`` or None to disable positioning
            screen_detector: ``ScreenModeDetector`` or None to disable positioning
        """
        paths = paths or DataPaths.default()
        runner = CommandRunner()
        settings = VSCodeSettingsManager(runner)
        position_store = None
        if window_positioner is not None and screen_detector is not None:
            position_store = WindowPositionStore(paths.window_layouts_file)

        return cls(
            aerospace=AeroSpaceClient(runner, shared_circuit_breaker()),
            ide_launcher=VSCodeLauncher(runner, settings),
            agent_layer_launcher=AgentLayerVSCodeLauncher(runner, settings),
            chrome_launcher=ChromeLauncher(runner),
            tab_store=ChromeTabStore(paths.chrome_tabs_dir),
            tab_capture=ChromeTabCapture(runner),
            git_remote=GitRemoteResolver(runner),
            recency=RecencyStore(paths.recent_projects_file),
            focus_history=FocusHistoryStore(paths.focus_history_file),
            config_loader=lambda: load_config(paths.config_file),
            window_positioner=window_positioner,
            screen_detector=screen_detector,
            position_store=position_store,
        )

    # ------------------------------------------------------------------
    # Configuration and queries
    # ------------------------------------------------------------------

    @property
    def projects(self) -> List[ProjectConfig]:
        return list(self.config.projects) if self.config else []

    def load_config(self) -> AppConfig:
        """Load (or reload) the configuration.

        Raises:
            ConfigError: If the config is missing or invalid; the previous
                config is dropped so operations fail with CONFIG_NOT_LOADED
        """
        try:
            config = self.config_loader()
        except ConfigError as e:
            self.config = None
            logger.error(f"config.failed {e}")
            raise
        self.config = config
        logger.info(f"config.loaded project_count={len(config.projects)}")
        return config

    def sorted_projects(self, query: str = "") -> List[ProjectConfig]:
        return sort_projects(self.projects, query, self.recency.ids)

    def workspace_state(self) -> ProjectWorkspaceState:
        """Open project workspaces and the focused one, from a single query.

        Raises:
            ProjectError: WINDOW_MANAGER_ERROR if AeroSpace cannot be queried
        """
        try:
            summaries = self.aerospace.list_workspaces_with_focus()
        except AeroSpaceError as e:
            logger.warning(f"workspace_state.failed {e}")
            raise ProjectError(ProjectErrorKind.WINDOW_MANAGER_ERROR, detail=str(e)) from e

        open_ids: List[str] = []
        active: Optional[str] = None
        for summary in summaries:
            project_id = project_id_from_workspace(summary.workspace)
            if project_id is None:
                continue
            if project_id not in open_ids:
                open_ids.append(project_id)
            if summary.is_focused and active is None:
                active = project_id
        return ProjectWorkspaceState(active_project_id=active, open_project_ids=open_ids)

    def _require_project(self, project_id: str) -> ProjectConfig:
        if self.config is None:
            raise ProjectError(ProjectErrorKind.CONFIG_NOT_LOADED, project_id=project_id)
        project = self.config.project(project_id)
        if project is None:
            logger.warning(f"select.project_not_found project_id={project_id}")
            raise ProjectError(ProjectErrorKind.PROJECT_NOT_FOUND, project_id=project_id)
        return project

    # ------------------------------------------------------------------
    # Focus
    # ------------------------------------------------------------------

    def capture_current_focus(self) -> Optional[CapturedFocus]:
        try:
            window = self.aerospace.focused_window()
        except AeroSpaceError as e:
            logger.warning(f"focus.capture.failed {e}")
            return None
        focus = CapturedFocus.from_window(window)
        logger.debug(f"focus.captured {focus.describe()}")
        return focus

    def restore_focus(self, focus: CapturedFocus) -> bool:
        return self.focus_window(focus.window_id)

    def focus_workspace(self, name: str) -> bool:
        """Focus a workspace (``summon-workspace`` with fallback to ``workspace``)."""
        try:
            self.aerospace.focus_workspace(name)
        except AeroSpaceError as e:
            logger.warning(f"focus.workspace.failed workspace={name} {e}")
            return False
        logger.debug(f"focus.workspace.succeeded workspace={name}")
        return True

    def focus_window(self, window_id: int) -> bool:
        try:
            self.aerospace.focus_window(window_id)
        except AeroSpaceError as e:
            logger.warning(f"focus.restore.failed window_id={window_id} {e}")
            return False
        logger.debug(f"focus.restored window_id={window_id}")
        return True

    async def focus_window_stable(
        self,
        window_id: int,
        timeout: float = WINDOW_POLL_TIMEOUT_SECONDS,
        poll_interval: float = WINDOW_POLL_INTERVAL_SECONDS,
    ) -> bool:
        """Poll until ``window_id`` is the focused window, re-asserting focus on drift.

        macOS can briefly steal focus during Space and app switches.

        Returns:
            True if the window was focused within the timeout
        """
        deadline = self._clock() + timeout
        while self._clock() < deadline:
            try:
                focused = await asyncio.to_thread(self.aerospace.focused_window)
                if focused.window_id == window_id:
                    return True
            except AeroSpaceError:
                pass
            try:
                await asyncio.to_thread(self.aerospace.focus_window, window_id)
            except AeroSpaceError as e:
                logger.debug(f"focus.reassert_failed window_id={window_id} {e}")
            await self._sleep(poll_interval)
        return False

    def _load_focus_history(self) -> None:
        if self.focus_history is None:
            return
        try:
            history = self.focus_history.load()
        except StoreError as e:
            logger.warning(f"focus_history.load_failed {e}")
            return
        if history is not None:
            self.focus_stack.restore(history)
            logger.debug(f"focus_history.loaded entries={len(self.focus_stack)}")

    def _save_focus_history(self) -> None:
        if self.focus_history is None:
            return
        try:
            self.focus_history.save(self.focus_stack.to_history())
        except StoreError as e:
            logger.warning(f"focus_history.save_failed {e}")

    def _restore_previous_focus(self, event_prefix: str) -> bool:
        """Focus stack first, then the most recent snapshot, then a non-project workspace.

        Returns:
            True if focus landed somewhere
        """
        tried = set()

        def restore(entry: CapturedFocus) -> bool:
            tried.add(entry.window_id)
            return self.focus_window(entry.window_id)

        focus = self.focus_stack.pop_first_valid(restore)
        if focus is None:
            recent = self.focus_stack.most_recent
            if recent is not None and recent.window_id not in tried and restore(recent):
                focus = recent
        self._save_focus_history()

        if focus is not None:
            logger.info(f"{event_prefix}.focus_restored window_id={focus.window_id} workspace={focus.workspace}")
            return True

        workspace = self._fallback_to_non_project_workspace()
        if workspace is not None:
            logger.info(f"{event_prefix}.focus_fallback_workspace workspace={workspace}")
            return True
        return False

    def _fallback_to_non_project_workspace(self) -> Optional[str]:
        """Focus the first non-project workspace with windows, else the first one."""
        try:
            summaries = self.aerospace.list_workspaces_with_focus()
        except AeroSpaceError as e:
            logger.warning(f"focus.fallback_list_failed {e}")
            return None

        candidates = [s.workspace for s in summaries if not is_project_workspace(s.workspace)]
        for workspace in candidates:
            try:
                has_windows = bool(self.aerospace.list_windows_workspace(workspace))
            except AeroSpaceError:
                continue
            if has_windows and self.focus_workspace(workspace):
                return workspace

        if candidates and self.focus_workspace(candidates[0]):
            return candidates[0]
        return None

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    async def select_project(self, project_id: str, pre_captured_focus: CapturedFocus) -> ActivationOutcome:
        """Activate a project workspace.

        Idempotent: existing tagged windows are reused and windows already in
        the workspace are not moved again.

        Args:
            project_id: Project to activate
            pre_captured_focus: Focus captured before any UI was shown; pushed
                onto the focus stack unless it is itself in a project workspace

        Returns:
            ActivationOutcome with the IDE window id and non-fatal warnings

        Raises:
            ProjectError: CONFIG_NOT_LOADED, PROJECT_NOT_FOUND, BROWSER_LAUNCH_FAILED,
                IDE_LAUNCH_FAILED, WINDOW_NOT_FOUND, WINDOW_MANAGER_ERROR or FOCUS_UNSTABLE
        """
        project = self._require_project(project_id)
        workspace = workspace_name_for_project(project_id)

        if not pre_captured_focus.is_project_workspace:
            self.focus_stack.push(pre_captured_focus)
            await asyncio.to_thread(self._save_focus_history)
        else:
            logger.debug(
                f"focus.push_skipped_project_workspace workspace={pre_captured_focus.workspace} "
                f"window_id={pre_captured_focus.window_id}"
            )

        # Phase 1: find or launch both windows, no moves yet
        chrome_window, tab_restore_warning = await self._find_or_launch_chrome(project)
        ide_launcher = self.agent_layer_launcher if project.use_agent_layer else self.ide_launcher
        ide_window, _ = await self._find_or_launch_window(
            IDE_BUNDLE_ID,
            project,
            lambda: ide_launcher.open_new_window(project),
            label="VS Code",
            source="vscode",
        )

        # Phase 2: move Chrome (no focus transfer), then VS Code
        await asyncio.to_thread(
            self._move_if_needed, chrome_window, workspace, False, source="chrome", project_id=project_id
        )
        await asyncio.to_thread(
            self._move_if_needed, ide_window, workspace, True, source="vscode", project_id=project_id
        )

        # Phase 3: verify arrival, focus workspace, focus IDE
        await self._wait_for_windows_in_workspace(chrome_window.window_id, ide_window.window_id, workspace, project_id)

        if not await self._ensure_workspace_focused(workspace):
            detail = f"Workspace {workspace} could not be focused within timeout"
            logger.error(f"select.workspace_focus_failed {detail}")
            raise ProjectError(
                ProjectErrorKind.WINDOW_MANAGER_ERROR, detail=detail, project_id=project_id, workspace=workspace
            )

        ide_id = ide_window.window_id
        await asyncio.to_thread(self.focus_window, ide_id)
        if not await self.focus_window_stable(ide_id, self.poll_timeout, self.poll_interval):
            detail = f"IDE window {ide_id} could not be stably focused in workspace {workspace}"
            logger.error(f"select.focus_unstable {detail}")
            raise ProjectError(
                ProjectErrorKind.FOCUS_UNSTABLE,
                detail=detail,
                project_id=project_id,
                workspace=workspace,
                window_id=ide_id,
            )

        layout_warning = await asyncio.to_thread(self._position_windows, project_id)

        await asyncio.to_thread(self.recency.record, project_id)
        logger.info(f"select.completed project_id={project_id} ide_window_id={ide_id}")
        return ActivationOutcome(
            ide_window_id=ide_id,
            tab_restore_warning=tab_restore_warning,
            layout_warning=layout_warning,
        )

    async def _find_or_launch_chrome(self, project: ProjectConfig) -> Tuple[ManagedWindow, Optional[str]]:
        existing = await asyncio.to_thread(self._find_window_by_token, BROWSER_BUNDLE_ID, project.id)
        if existing is not None:
            logger.info(f"select.chrome_found window_id={existing.window_id}")
            return existing, None

        urls = await asyncio.to_thread(self._resolve_initial_urls, project)
        try:
            window, _ = await self._find_or_launch_window(
                BROWSER_BUNDLE_ID,
                project,
                lambda: self.chrome_launcher.open_new_window(project.id, urls),
                label="Chrome",
                source="chrome",
            )
            return window, None
        except ProjectError as e:
            if not urls:
                raise
            logger.warning(f"select.chrome_tab_launch_failed {e}")

        window, _ = await self._find_or_launch_window(
            BROWSER_BUNDLE_ID,
            project,
            lambda: self.chrome_launcher.open_new_window(project.id, []),
            label="Chrome",
            source="chrome",
        )
        return window, TAB_RESTORE_WARNING

    async def _find_or_launch_window(
        self,
        bundle_id: str,
        project: ProjectConfig,
        launch: Callable[[], None],
        label: str,
        source: str,
    ) -> Tuple[ManagedWindow, bool]:
        """Return (window, launched). Never moves the window."""
        window = await asyncio.to_thread(self._find_window_by_token, bundle_id, project.id)
        if window is not None:
            logger.info(f"select.{source}_found window_id={window.window_id}")
            return window, False

        try:
            await asyncio.to_thread(launch)
        except (LaunchError, CommandError) as e:
            logger.error(f"select.{source}_launch_failed project_id={project.id} error={e}")
            kind = (
                ProjectErrorKind.BROWSER_LAUNCH_FAILED
                if bundle_id == BROWSER_BUNDLE_ID
                else ProjectErrorKind.IDE_LAUNCH_FAILED
            )
            raise ProjectError(kind, detail=f"{label} launch failed: {e}", project_id=project.id) from e
        logger.info(f"select.{source}_launched project_id={project.id}")

        deadline = self._clock() + self.poll_timeout
        while self._clock() < deadline:
            window = await asyncio.to_thread(self._find_window_by_token, bundle_id, project.id)
            if window is not None:
                return window, True
            await self._sleep(self.poll_interval)

        raise ProjectError(
            ProjectErrorKind.WINDOW_NOT_FOUND,
            detail=f"{label} window did not appear within timeout",
            project_id=project.id,
        )

    def _find_window_by_token(self, bundle_id: str, project_id: str) -> Optional[ManagedWindow]:
        try:
            windows = self.aerospace.list_windows_for_app(bundle_id)
        except AeroSpaceError as e:
            logger.debug(f"select.window_lookup_failed bundle={bundle_id} {e}")
            return None
        token = window_token(project_id)
        return next((w for w in windows if w.has_token(token)), None)

    def _move_if_needed(
        self,
        window: ManagedWindow,
        workspace: str,
        focus_follows: bool,
        source: str,
        project_id: str,
    ) -> None:
        if window.workspace == workspace:
            return
        logger.info(f"select.{source}_moving window_id={window.window_id} workspace={workspace}")
        try:
            self.aerospace.move_window_to_workspace(workspace, window.window_id, focus_follows=focus_follows)
        except AeroSpaceError as e:
            raise ProjectError(
                ProjectErrorKind.WINDOW_MANAGER_ERROR,
                detail=str(e),
                project_id=project_id,
                workspace=workspace,
                window_id=window.window_id,
            ) from e

    async def _wait_for_windows_in_workspace(
        self, chrome_id: int, ide_id: int, workspace: str, project_id: str
    ) -> None:
        deadline = self._clock() + self.poll_timeout
        while self._clock() < deadline:
            try:
                windows = await asyncio.to_thread(self.aerospace.list_windows_workspace, workspace)
                ids = {w.window_id for w in windows}
            except AeroSpaceError:
                # Workspace may not be queryable yet
                ids = set()
            if chrome_id in ids and ide_id in ids:
                logger.debug(f"select.windows_verified_in_workspace workspace={workspace}")
                return
            await self._sleep(self.poll_interval)

        raise ProjectError(
            ProjectErrorKind.WINDOW_MANAGER_ERROR,
            detail="Windows did not arrive in workspace within timeout",
            project_id=project_id,
            workspace=workspace,
        )

    async def _ensure_workspace_focused(self, workspace: str) -> bool:
        deadline = self._clock() + self.poll_timeout
        while self._clock() < deadline:
            try:
                summaries = await asyncio.to_thread(self.aerospace.list_workspaces_with_focus)
            except AeroSpaceError:
                summaries = []
            if any(s.workspace == workspace and s.is_focused for s in summaries):
                logger.debug(f"focus.workspace.verified workspace={workspace}")
                return True
            try:
                await asyncio.to_thread(self.aerospace.focus_workspace, workspace)
            except AeroSpaceError as e:
                logger.debug(f"focus.workspace.retry workspace={workspace} {e}")
            await self._sleep(self.poll_interval)
        return False

    # ------------------------------------------------------------------
    # Close, exit, move
    # ------------------------------------------------------------------

    def close_project(self, project_id: str) -> CloseOutcome:
        """Close every window in the project workspace and restore focus.

        Raises:
            ProjectError: CONFIG_NOT_LOADED, PROJECT_NOT_FOUND, or
                WINDOW_MANAGER_ERROR when no window could be closed
        """
        self._require_project(project_id)
        workspace = workspace_name_for_project(project_id)

        tab_capture_warning = self._capture_tabs(project_id)
        self.capture_window_positions(project_id)

        try:
            failures = self.aerospace.close_workspace(workspace)
        except AeroSpaceError as e:
            logger.error(f"close.failed project_id={project_id} {e}")
            raise ProjectError(
                ProjectErrorKind.WINDOW_MANAGER_ERROR, detail=str(e), project_id=project_id, workspace=workspace
            ) from e
        for failure in failures:
            logger.warning(f"close.window_close_failed {failure}")
        logger.info(f"close.workspace_closed project_id={project_id}")

        if not self._restore_previous_focus("close"):
            logger.warning("close.focus_restore_exhausted")

        logger.info(f"close.completed project_id={project_id}")
        return CloseOutcome(tab_capture_warning=tab_capture_warning)

    def exit_to_non_project_window(self) -> None:
        """Leave project space without closing anything.

        Raises:
            ProjectError: NO_ACTIVE_PROJECT, NO_PREVIOUS_WINDOW or WINDOW_MANAGER_ERROR
        """
        state = self.workspace_state()
        if state.active_project_id is None:
            logger.warning("exit.no_active_project")
            raise ProjectError(ProjectErrorKind.NO_ACTIVE_PROJECT)

        self.capture_window_positions(state.active_project_id)

        if not self._restore_previous_focus("exit"):
            logger.warning("exit.no_previous_window")
            raise ProjectError(ProjectErrorKind.NO_PREVIOUS_WINDOW, project_id=state.active_project_id)
        logger.info("exit.completed")

    def move_window_to_project(self, window_id: int, project_id: str) -> None:
        """Move a window into a project's workspace without following it.

        Raises:
            ProjectError: CONFIG_NOT_LOADED, PROJECT_NOT_FOUND or WINDOW_MANAGER_ERROR
        """
        self._require_project(project_id)
        workspace = workspace_name_for_project(project_id)
        try:
            self.aerospace.move_window_to_workspace(workspace, window_id, focus_follows=False)
        except AeroSpaceError as e:
            logger.error(f"move_window.failed window_id={window_id} project_id={project_id} {e}")
            raise ProjectError(
                ProjectErrorKind.WINDOW_MANAGER_ERROR,
                detail=str(e),
                project_id=project_id,
                workspace=workspace,
                window_id=window_id,
            ) from e
        logger.info(f"move_window.completed window_id={window_id} workspace={workspace}")

    # ------------------------------------------------------------------
    # Chrome tabs
    # ------------------------------------------------------------------

    def _resolve_initial_urls(self, project: ProjectConfig) -> List[str]:
        """Saved snapshot verbatim, else always-open tabs plus defaults."""
        try:
            snapshot = self.tab_store.load(project.id)
        except StoreError as e:
            logger.warning(f"select.tab_snapshot_load_failed {e}")
            snapshot = None
        if snapshot is not None and snapshot.urls:
            return list(snapshot.urls)

        chrome = self.config.chrome
        git_url = None
        if chrome.open_git_remote and not project.is_ssh:
            git_url = self.git_remote.resolve(project.local_path)
        return ChromeTabResolver.resolve(chrome, project, git_url).ordered_urls

    def _capture_tabs(self, project_id: str) -> Optional[str]:
        try:
            urls = self.tab_capture.capture_tab_urls(window_token(project_id))
        except CommandError as e:
            # Keep the previous snapshot: a transient failure must not destroy it
            logger.warning(f"close.tab_capture_failed {e}")
            return f"Tab capture failed: {e.message}"

        if not urls:
            try:
                self.tab_store.delete(project_id)
            except StoreError as e:
                logger.warning(f"close.tab_delete_failed {e}")
            return None

        try:
            self.tab_store.save(ChromeTabSnapshot(urls=urls), project_id)
        except StoreError as e:
            logger.warning(f"close.tab_save_failed {e}")
            return f"Tab save failed: {e}"
        logger.info(f"close.tabs_captured project_id={project_id} tab_count={len(urls)}")
        return None

    # ------------------------------------------------------------------
    # Window positioning
    # ------------------------------------------------------------------

    def _positioning_deps_missing(self) -> List[str]:
        deps = {
            "window_positioner": self.window_positioner,
            "screen_detector": self.screen_detector,
            "position_store": self.position_store,
        }
        return [name for name, dep in deps.items() if dep is None]

    def _position_windows(self, project_id: str) -> Optional[str]:
        """Apply saved or computed frames. Returns a warning string or None."""
        missing = self._positioning_deps_missing()
        if len(missing) == 3:
            return None
        if missing:
            logger.warning(f"position.partial_deps missing={', '.join(missing)}")
            return f"Window positioning disabled: missing {', '.join(missing)}"

        layout_config = self.config.layout
        warnings: List[str] = []

        try:
            ide_frame = self.window_positioner.get_primary_window_frame(IDE_BUNDLE_ID, project_id)
        except WindowPositionError as e:
            logger.warning(f"position.ide_frame_read_failed {e}")
            return f"Window positioning skipped: {e}"

        center = Point(x=ide_frame.mid_x, y=ide_frame.mid_y)
        try:
            mode = self.screen_detector.detect_mode(center, layout_config.small_screen_threshold)
        except ScreenDetectionError as e:
            logger.warning(f"position.screen_mode_detection_failed {e}")
            mode = ScreenMode.WIDE

        try:
            physical_width = self.screen_detector.physical_width_inches(center)
        except ScreenDetectionError as e:
            logger.warning(f"position.physical_width_detection_failed {e}")
            physical_width = FALLBACK_PHYSICAL_WIDTH_INCHES
            warnings.append('Display physical width unknown (using 32" fallback); layout may be imprecise')

        screen = self.screen_detector.screen_visible_frame(center)
        if screen is None:
            logger.warning("position.screen_frame_not_found")
            return "Window positioning skipped: screen not found"

        computed = compute_layout(screen, physical_width, mode, layout_config)
        try:
            saved = self.position_store.load(project_id, mode)
        except StoreError as e:
            logger.warning(f"position.store_load_failed {e}")
            saved = None

        if saved is not None:
            browser_frame = saved.browser if saved.browser is not None else computed.browser_frame
            layout = WindowLayout(
                ide_frame=clamp_to_screen(saved.ide, screen),
                browser_frame=clamp_to_screen(browser_frame, screen),
            )
            logger.debug(f"position.using_saved_frames project_id={project_id} mode={mode.value}")
        else:
            layout = computed
            logger.debug(f"position.using_computed_frames project_id={project_id} mode={mode.value}")

        offset = cascade_offset_points(screen.width, physical_width)
        for label, bundle_id, frame in (
            ("IDE", IDE_BUNDLE_ID, layout.ide_frame),
            ("Chrome", BROWSER_BUNDLE_ID, layout.browser_frame),
        ):
            warning = self._apply_frames(label, bundle_id, project_id, frame, offset)
            if warning:
                warnings.append(warning)

        return "; ".join(warnings) if warnings else None

    def _apply_frames(self, label: str, bundle_id: str, project_id: str, frame, offset: float) -> Optional[str]:
        source = label.lower()
        try:
            result: WindowPositionResult = self.window_positioner.set_window_frames(
                bundle_id, project_id, frame, offset
            )
        except WindowPositionError as e:
            logger.warning(f"position.{source}_set_failed {e}")
            return f"{label} positioning failed: {e}"

        if result.positioned < 1:
            logger.warning(f"position.{source}_set_none")
            return f"{label}: no windows were positioned"
        if result.has_partial_failure:
            logger.warning(f"position.{source}_partial positioned={result.positioned} matched={result.matched}")
            return f"{label}: positioned {result.positioned} of {result.matched} windows"
        logger.debug(f"position.{source}_positioned count={result.positioned}")
        return None

    def capture_window_positions(self, project_id: str) -> None:
        """Save the current IDE/browser frames for the project (best effort)."""
        if self._positioning_deps_missing() or self.config is None:
            return

        try:
            ide_frame = self.window_positioner.get_primary_window_frame(IDE_BUNDLE_ID, project_id)
        except WindowPositionError as e:
            logger.warning(f"capture_position.ide_read_failed {e}")
            return

        try:
            browser_frame = self.window_positioner.get_primary_window_frame(BROWSER_BUNDLE_ID, project_id)
        except WindowPositionError as e:
            logger.warning(f"capture_position.chrome_read_failed {e}")
            browser_frame = None

        center = Point(x=ide_frame.mid_x, y=ide_frame.mid_y)
        try:
            mode = self.screen_detector.detect_mode(center, self.config.layout.small_screen_threshold)
        except ScreenDetectionError as e:
            logger.warning(f"capture_position.screen_mode_failed {e}")
            mode = ScreenMode.WIDE

        try:
            self.position_store.save(project_id, mode, SavedWindowFrames(ide=ide_frame, browser=browser_frame))
        except StoreError as e:
            logger.warning(f"capture_position.save_failed {e}")
            return
        logger.info(f"capture_position.saved project_id={project_id} mode={mode.value}")
