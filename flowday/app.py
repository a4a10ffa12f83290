"""Main FlowDay application."""

import logging
import sys
from pathlib import Path
from typing import Optional

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk, Gio, GLib, Adw

from flowday import __version__, __app_id__
from flowday.canvas import FlowCanvas
from flowday.config import VIEW_MAP
from flowday.controller import EditorController
from flowday.database import Database
from flowday.persistence import SaveStatus
from flowday.widgets import Palette, PropertiesPanel

logger = logging.getLogger(__name__)


class GLibScheduler:
    """Timer source for the controller, backed by the GLib main loop."""

    def __init__(self):
        self._active = set()

    def schedule(self, delay_ms: int, callback) -> int:
        def fire():
            self._active.discard(source_id)
            callback()
            return GLib.SOURCE_REMOVE

        source_id = GLib.timeout_add(delay_ms, fire)
        self._active.add(source_id)
        return source_id

    def cancel(self, handle: int):
        # Removing a source that already fired makes GLib warn.
        if handle in self._active:
            self._active.discard(handle)
            GLib.source_remove(handle)


class FlowDayWindow(Adw.ApplicationWindow):
    """Main application window."""

    def __init__(self, app: Adw.Application, db: Database):
        super().__init__(application=app)
        self.db = db
        self.controller = EditorController(db, GLibScheduler())

        # Window setup
        self.set_title("FlowDay")
        self.set_default_size(1280, 860)

        self._load_css()
        self._build_ui()
        self._setup_shortcuts()
        self._connect_controller()

        self.controller.start()
        self._update_save_status()
        self._update_view_controls()

        # Emergency save when the window loses focus or closes
        self.connect("notify::is-active", self._on_active_changed)
        self.connect("close-request", self._on_close_request)

    def _load_css(self):
        """Load custom CSS theme."""
        css_path = Path(__file__).parent / "theme.css"
        if css_path.exists():
            css_provider = Gtk.CssProvider()
            css_provider.load_from_path(str(css_path))
            Gtk.StyleContext.add_provider_for_display(
                Gdk.Display.get_default(),
                css_provider,
                Gtk.STYLE_PROVIDER_PRIORITY_APPLICATION
            )

    def _build_ui(self):
        """Build the main UI layout."""
        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        main_box.append(self._build_header())

        content = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL)
        content.set_vexpand(True)

        self.palette = Palette(self.controller)
        content.append(self.palette)
        content.append(Gtk.Separator(orientation=Gtk.Orientation.VERTICAL))

        self.canvas = FlowCanvas(self.controller)
        canvas_frame = Gtk.Frame()
        canvas_frame.set_child(self.canvas)
        canvas_frame.add_css_class("canvas-container")
        content.append(canvas_frame)

        self.properties = PropertiesPanel(self.controller)
        self.properties_revealer = Gtk.Revealer()
        self.properties_revealer.set_transition_type(Gtk.RevealerTransitionType.SLIDE_LEFT)
        self.properties_revealer.set_reveal_child(False)
        self.properties_revealer.set_child(self.properties)
        content.append(self.properties_revealer)

        self.toast_overlay = Adw.ToastOverlay()
        self.toast_overlay.set_child(content)
        main_box.append(self.toast_overlay)

        self.set_content(main_box)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

    def _build_header(self) -> Adw.HeaderBar:
        """Build the header bar."""
        header = Adw.HeaderBar()
        header.add_css_class("flat")

        # Menu button
        menu_btn = Gtk.MenuButton()
        menu_btn.set_icon_name("open-menu-symbolic")
        menu_btn.set_tooltip_text("Menu")

        menu = Gio.Menu()
        layout_section = Gio.Menu()
        layout_section.append("新建布局...", "win.new-layout")
        layout_section.append("立即保存", "win.save")
        menu.append_section(None, layout_section)

        view_section = Gio.Menu()
        view_section.append("切换视图", "win.toggle-view")
        view_section.append("重置视图", "win.zoom-reset")
        menu.append_section(None, view_section)

        danger_section = Gio.Menu()
        danger_section.append("重置所有数据...", "win.reset-data")
        danger_section.append("关于 FlowDay", "win.show-about")
        menu.append_section(None, danger_section)

        popover = Gtk.PopoverMenu()
        popover.set_menu_model(menu)
        menu_btn.set_popover(popover)
        header.pack_start(menu_btn)

        # Layout switcher
        self.layout_model = Gtk.StringList.new([])
        self.layout_dropdown = Gtk.DropDown(model=self.layout_model)
        self.layout_dropdown.set_tooltip_text("切换布局")
        self._layout_handler = self.layout_dropdown.connect("notify::selected", self._on_layout_selected)
        header.pack_start(self.layout_dropdown)

        new_layout_btn = Gtk.Button()
        new_layout_btn.set_icon_name("list-add-symbolic")
        new_layout_btn.set_tooltip_text("新建布局 (Ctrl+N)")
        new_layout_btn.add_css_class("flat")
        new_layout_btn.connect("clicked", lambda b: self._on_new_layout())
        header.pack_start(new_layout_btn)

        title = Gtk.Label(label="FlowDay")
        title.add_css_class("title")
        header.set_title_widget(title)

        # Save status (click to save now)
        self.save_btn = Gtk.Button()
        self.save_btn.add_css_class("flat")
        self.save_btn.set_tooltip_text("立即保存 (Ctrl+S)")
        self.save_btn.connect("clicked", lambda b: self._on_save())
        header.pack_end(self.save_btn)

        # Zoom controls
        zoom_box = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL)
        zoom_box.add_css_class("linked")
        for icon, tooltip, callback in (
            ("zoom-out-symbolic", "缩小", self.controller.zoom_out),
            ("zoom-original-symbolic", "重置视图", self.controller.reset_view),
            ("zoom-in-symbolic", "放大", self.controller.zoom_in),
        ):
            button = Gtk.Button()
            button.set_icon_name(icon)
            button.set_tooltip_text(tooltip)
            button.connect("clicked", lambda b, cb=callback: cb())
            zoom_box.append(button)
        header.pack_end(zoom_box)

        self.zoom_label = Gtk.Label(label="100%")
        self.zoom_label.add_css_class("dim-label")
        self.zoom_label.add_css_class("numeric")
        header.pack_end(self.zoom_label)

        self.view_btn = Gtk.Button()
        self.view_btn.connect("clicked", lambda b: self.controller.toggle_view_mode())
        header.pack_end(self.view_btn)

        return header

    def _setup_shortcuts(self):
        """Setup keyboard shortcuts."""
        actions = [
            ("new-layout", self._on_new_layout, "<Control>n"),
            ("save", self._on_save, "<Control>s"),
            ("toggle-view", self.controller.toggle_view_mode, "<Control>m"),
            ("zoom-in", self.controller.zoom_in, "<Control>plus"),
            ("zoom-out", self.controller.zoom_out, "<Control>minus"),
            ("zoom-reset", self.controller.reset_view, "<Control>0"),
            ("reset-data", self._on_reset_data, None),
            ("show-about", self._show_about, None),
            ("quit", lambda: self.close(), "<Control>q"),
        ]

        for name, callback, accel in actions:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            self.add_action(action)

            if accel:
                self.get_application().set_accels_for_action(f"win.{name}", [accel])

        self.get_application().set_accels_for_action("win.zoom-in", ["<Control>plus", "<Control>equal"])

    def _connect_controller(self):
        controller = self.controller
        controller.on_nodes_changed = self._on_nodes_changed
        controller.on_selection_changed = self._on_selection_changed
        controller.on_layouts_changed = self._on_layouts_changed
        controller.on_view_changed = self._on_view_changed
        controller.on_pending_delete_changed = self._on_pending_delete_changed
        controller.persistence.on_status_changed = lambda status: self._update_save_status()
        controller.persistence.on_save_failed = self._on_save_failed

    # ==================== Controller Callbacks ====================

    def _on_nodes_changed(self):
        self.canvas.refresh()
        self.properties.refresh()

    def _on_selection_changed(self, node_id: Optional[str]):
        self.properties.refresh()
        self.properties_revealer.set_reveal_child(node_id is not None)
        self.canvas.queue_draw()

    def _on_layouts_changed(self):
        """Repopulate the layout dropdown without re-triggering a switch."""
        self.layout_dropdown.handler_block(self._layout_handler)
        layouts = self.controller.layouts
        self.layout_model.splice(0, self.layout_model.get_n_items(), [l.name for l in layouts])
        for index, layout in enumerate(layouts):
            if layout.id == self.controller.active_layout_id:
                self.layout_dropdown.set_selected(index)
        self.layout_dropdown.handler_unblock(self._layout_handler)

    def _on_view_changed(self):
        self.canvas.refresh()
        self._update_view_controls()

    def _on_pending_delete_changed(self, node_id: Optional[str]):
        self.canvas.queue_draw()
        if node_id is not None:
            self._show_toast("再按一次 Backspace 删除")

    def _update_view_controls(self):
        self.zoom_label.set_label(f"{round(self.controller.viewport.zoom * 100)}%")
        if self.controller.view_mode == VIEW_MAP:
            self.view_btn.set_label("列表视图")
        else:
            self.view_btn.set_label("地图视图")

    def _update_save_status(self):
        persistence = self.controller.persistence
        if persistence.status == SaveStatus.SAVING:
            self.save_btn.set_label("保存中...")
        elif persistence.status == SaveStatus.UNSAVED:
            self.save_btn.set_label("未保存")
        elif persistence.last_saved_time:
            self.save_btn.set_label(f"已保存 {persistence.last_saved_time}")
        else:
            self.save_btn.set_label("已保存")

    def _on_save_failed(self, message: str):
        dialog = Adw.MessageDialog(
            transient_for=self,
            heading="保存失败",
            body=message
        )
        dialog.add_response("ok", "OK")
        dialog.connect("response", lambda d, r: self.controller.persistence.failure_acknowledged())
        dialog.present()

    # ==================== Layouts ====================

    def _on_layout_selected(self, dropdown, _param):
        index = dropdown.get_selected()
        layouts = self.controller.layouts
        if 0 <= index < len(layouts):
            self.controller.switch_layout(layouts[index].id)

    def _on_new_layout(self):
        """Ask for a name and create an empty layout."""
        dialog = Adw.MessageDialog(
            transient_for=self,
            heading="新建布局",
            body="请输入新布局名称:"
        )

        entry = Gtk.Entry()
        entry.set_margin_start(16)
        entry.set_margin_end(16)
        entry.set_activates_default(True)
        dialog.set_extra_child(entry)

        dialog.add_response("cancel", "取消")
        dialog.add_response("create", "创建")
        dialog.set_default_response("create")
        dialog.connect("response", lambda d, r: self._confirm_new_layout(r, entry.get_text()))
        dialog.present()
        entry.grab_focus()

    def _confirm_new_layout(self, response: str, name: str):
        if response == "create" and self.controller.create_layout(name) is None:
            self._show_toast("布局名称不能为空")

    def _on_save(self):
        if self.controller.manual_save():
            self._show_toast("已保存")

    def _on_reset_data(self):
        """Confirm, then wipe stored data and restore the built-in layouts."""
        dialog = Adw.MessageDialog(
            transient_for=self,
            heading="重置所有数据?",
            body="所有布局将恢复为默认内容，此操作无法撤销。"
        )
        dialog.add_response("cancel", "取消")
        dialog.add_response("reset", "重置")
        dialog.set_response_appearance("reset", Adw.ResponseAppearance.DESTRUCTIVE)
        dialog.set_default_response("cancel")
        dialog.connect("response", lambda d, r: self._confirm_reset_data(r))
        dialog.present()

    def _confirm_reset_data(self, response: str):
        if response == "reset":
            self.controller.reset_data()
            self._show_toast("已恢复默认布局")

    # ==================== Window Events ====================

    def _on_key_pressed(self, controller, keyval, keycode, state):
        """Backspace/Delete arm and confirm deletion of the selected node."""
        if keyval not in (Gdk.KEY_BackSpace, Gdk.KEY_Delete):
            return False
        if isinstance(self.get_focus(), (Gtk.Text, Gtk.TextView)):
            return False
        if self.controller.selected_id is None:
            return False
        self.controller.request_delete()
        return True

    def _on_active_changed(self, window, _param):
        # Focus moving to one of our own dialogs is not the window going away.
        if not self.is_active() and not self._has_open_dialog():
            self.controller.visibility_lost()

    def _has_open_dialog(self) -> bool:
        app = self.get_application()
        return any(w.get_transient_for() is self and w.get_visible() for w in app.get_windows())

    def _on_close_request(self, window) -> bool:
        self.controller.visibility_lost()
        return False

    def _show_about(self):
        about = Adw.AboutWindow(
            transient_for=self,
            application_name="FlowDay",
            application_icon="x-office-calendar-symbolic",
            version=__version__,
            comments="Plan a day as a flow of times, tasks, places and focus blocks.",
            license_type=Gtk.License.MIT_X11,
        )
        about.present()

    def _show_toast(self, message: str):
        """Show a toast notification."""
        toast = Adw.Toast(title=message)
        toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)


class FlowDayApp(Adw.Application):
    """Main application class."""

    def __init__(self):
        super().__init__(
            application_id=__app_id__,
            flags=Gio.ApplicationFlags.DEFAULT_FLAGS
        )
        self.db: Optional[Database] = None
        self.window: Optional[FlowDayWindow] = None

    def do_startup(self):
        """Initialize application."""
        Adw.Application.do_startup(self)

        self.db = Database()
        logger.info("Using database %s", self.db.db_path)

        style_manager = Adw.StyleManager.get_default()
        style_manager.set_color_scheme(Adw.ColorScheme.FORCE_LIGHT)

    def do_activate(self):
        """Activate application."""
        if not self.window:
            self.window = FlowDayWindow(self, self.db)

        self.window.present()

    def do_shutdown(self):
        """Shutdown application."""
        if self.window:
            self.window.controller.visibility_lost()
        if self.db:
            self.db.close()

        Adw.Application.do_shutdown(self)


def main() -> int:
    """Application entry point."""
    app = FlowDayApp()
    return app.run(sys.argv)


if __name__ == "__main__":
    sys.exit(main())
