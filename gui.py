"""
Tkinter-based image slicer GUI.

Layout
------
+-------------------------------+---------------------+
|  Source image with selection  |  Area list          |
|  rectangles and handles       |  Area properties    |
|                               |  HTML / URL replace |
+-------------------------------+---------------------+
|  Status                                             |
+-----------------------------------------------------+
"""

from __future__ import annotations

import os
import tkinter as tk
from concurrent.futures import Future, ThreadPoolExecutor
from tkinter import colorchooser, filedialog, messagebox, ttk
from typing import Dict, Optional

from loguru import logger
from PIL import Image, ImageTk

import export
from coords import CoordinateMapper
from emitter import InvalidFontSizeError, referenced_files, replace_image_urls, sanitize_base_name
from interaction import HANDLES, InteractionController, Mode, SliceInProgressError, handle_positions
from raster import RasterizeError
from selections import TEXT_ALIGNMENTS, InvalidSelectionError, SelectionKind, SelectionStore


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
CANVAS_BG = "#2b2b2b"
AREA_COLOR = "#0070f3"
EDIT_COLOR = "#ff3e00"
HANDLE_SIZE = 6
POLL_MS = 50


class App(tk.Tk):
    """Main application window."""

    def __init__(self, image_path: Optional[str] = None) -> None:
        super().__init__()
        self.title("Image Slicer")
        self.configure(bg="#333")
        self.minsize(1100, 640)

        # State -----------------------------------------------------------
        self._img: Optional[Image.Image] = None
        self._tk_img: Optional[ImageTk.PhotoImage] = None
        self._base_name = ""
        self._store = SelectionStore()
        self._ctl = InteractionController(self._store)
        self._result: Optional[export.SliceResult] = None
        self._pool = ThreadPoolExecutor(max_workers=1)
        self._pending: Optional[Future] = None
        self._syncing = False

        self._build_ui()
        self._bind_keys()
        self.protocol("WM_DELETE_WINDOW", self._on_close)
        if image_path:
            self.after(100, lambda: self._open_image(image_path))

    # ------------------------------------------------------------------
    # UI construction
    # ------------------------------------------------------------------
    def _build_ui(self) -> None:
        toolbar = ttk.Frame(self)
        toolbar.pack(fill=tk.X, padx=4, pady=(4, 0))

        ttk.Button(toolbar, text="Load Image…", command=self._load_image).pack(side=tk.LEFT, padx=2)
        ttk.Separator(toolbar, orient=tk.VERTICAL).pack(side=tk.LEFT, fill=tk.Y, padx=6)
        ttk.Button(toolbar, text="New Link Area",
                   command=lambda: self._new_selection(SelectionKind.LINK)).pack(side=tk.LEFT, padx=2)
        ttk.Button(toolbar, text="New Text Area",
                   command=lambda: self._new_selection(SelectionKind.REPLACE)).pack(side=tk.LEFT, padx=2)
        ttk.Separator(toolbar, orient=tk.VERTICAL).pack(side=tk.LEFT, fill=tk.Y, padx=6)
        self._slice_btn = ttk.Button(toolbar, text="Slice Image", command=self._slice)
        self._slice_btn.pack(side=tk.LEFT, padx=2)
        ttk.Button(toolbar, text="Export Folder…", command=self._export_folder).pack(side=tk.LEFT, padx=2)
        ttk.Button(toolbar, text="Export JSON…", command=self._export_json).pack(side=tk.LEFT, padx=2)

        main = ttk.PanedWindow(self, orient=tk.HORIZONTAL)
        main.pack(fill=tk.BOTH, expand=True, padx=4, pady=4)

        self._canvas = tk.Canvas(main, bg=CANVAS_BG, highlightthickness=0)
        main.add(self._canvas, weight=3)

        right = ttk.Frame(main)
        main.add(right, weight=2)

        # Area list
        self._tree = ttk.Treeview(right, columns=("kind", "box"), show="tree headings", height=6)
        self._tree.heading("#0", text="Area")
        self._tree.heading("kind", text="Type")
        self._tree.heading("box", text="x, y, w × h")
        self._tree.column("#0", width=120)
        self._tree.column("kind", width=70)
        self._tree.pack(side=tk.TOP, fill=tk.X, pady=(0, 4))
        self._tree.bind("<<TreeviewSelect>>", self._on_tree_select)

        row = ttk.Frame(right)
        row.pack(side=tk.TOP, fill=tk.X)
        ttk.Button(row, text="Delete Area", command=self._delete_selected).pack(side=tk.LEFT, padx=2)

        self._build_properties(right)

        # HTML output + hosted URL replacement
        notebook = ttk.Notebook(right)
        notebook.pack(side=tk.TOP, fill=tk.BOTH, expand=True, pady=(4, 0))
        self._html_text = tk.Text(notebook, wrap=tk.NONE, height=10, font=("Consolas", 10))
        notebook.add(self._html_text, text="HTML")
        replace_tab = ttk.Frame(notebook)
        notebook.add(replace_tab, text="Replace URLs")
        ttk.Label(replace_tab, text="One hosted URL per line, in file order:").pack(anchor=tk.W)
        self._urls_text = tk.Text(replace_tab, height=6, wrap=tk.NONE)
        self._urls_text.pack(fill=tk.BOTH, expand=True)
        ttk.Button(replace_tab, text="Replace", command=self._replace_urls).pack(anchor=tk.E, pady=2)

        status_bar = ttk.Frame(self)
        status_bar.pack(fill=tk.X, padx=4, pady=(0, 4))
        self._status_var = tk.StringVar(value="Load an image to begin.")
        ttk.Label(status_bar, textvariable=self._status_var).pack(side=tk.LEFT, padx=4)

        self._canvas.bind("<Configure>", lambda _: self._redraw())
        self._canvas.bind("<ButtonPress-1>", self._on_press)
        self._canvas.bind("<B1-Motion>", self._on_drag)
        self._canvas.bind("<ButtonRelease-1>", self._on_release)
        self._canvas.bind("<Leave>", self._on_leave)
        self._canvas.bind("<Motion>", self._on_hover)

    def _build_properties(self, parent: ttk.Frame) -> None:
        box = ttk.LabelFrame(parent, text="Properties")
        box.pack(side=tk.TOP, fill=tk.X, pady=4)

        self._vars: Dict[str, tk.StringVar] = {}
        kind_row = ttk.Frame(box)
        kind_row.pack(fill=tk.X, pady=1)
        ttk.Label(kind_row, text="Type:", width=10).pack(side=tk.LEFT, padx=4)
        self._vars["kind"] = tk.StringVar()
        kind_box = ttk.Combobox(kind_row, textvariable=self._vars["kind"],
                                values=[k.value for k in SelectionKind], state="readonly", width=8)
        kind_box.pack(side=tk.LEFT)
        kind_box.bind("<<ComboboxSelected>>", lambda _: self._on_field_change("kind"))

        geo = ttk.Frame(box)
        geo.pack(fill=tk.X)
        for field in ("x", "y", "width", "height"):
            ttk.Label(geo, text=f"{field}:").pack(side=tk.LEFT, padx=(4, 0))
            var = tk.StringVar()
            var.trace_add("write", lambda *_a, f=field: self._on_geometry_change(f))
            self._vars[field] = var
            ttk.Entry(geo, textvariable=var, width=6, justify=tk.CENTER).pack(side=tk.LEFT, padx=2)

        def _row(label: str, key: str, width: int = 30) -> ttk.Frame:
            frame = ttk.Frame(box)
            frame.pack(fill=tk.X, pady=1)
            ttk.Label(frame, text=label, width=10).pack(side=tk.LEFT, padx=4)
            var = tk.StringVar()
            var.trace_add("write", lambda *_a, k=key: self._on_field_change(k))
            self._vars[key] = var
            ttk.Entry(frame, textvariable=var, width=width).pack(side=tk.LEFT, fill=tk.X, expand=True)
            return frame

        _row("URL:", "url")
        _row("Text:", "text")
        font_row = _row("Font size:", "font_size", width=8)
        self._vars["text_align"] = tk.StringVar()
        align = ttk.Combobox(font_row, textvariable=self._vars["text_align"],
                             values=TEXT_ALIGNMENTS, state="readonly", width=8)
        align.pack(side=tk.LEFT, padx=4)
        align.bind("<<ComboboxSelected>>", lambda _: self._on_field_change("text_align"))

        colors = ttk.Frame(box)
        colors.pack(fill=tk.X, pady=2)
        ttk.Button(colors, text="Background…",
                   command=lambda: self._pick_color("background")).pack(side=tk.LEFT, padx=4)
        ttk.Button(colors, text="Text colour…",
                   command=lambda: self._pick_color("text")).pack(side=tk.LEFT, padx=4)

    def _bind_keys(self) -> None:
        self.bind("<Control-o>", lambda _: self._load_image())
        self.bind("<Delete>", lambda _: self._delete_selected())
        self.bind("<Escape>", lambda _: self._cancel_gesture())

    # ------------------------------------------------------------------
    # Image loading
    # ------------------------------------------------------------------
    def _load_image(self) -> None:
        path = filedialog.askopenfilename(
            filetypes=[("Images", "*.png *.jpg *.jpeg *.bmp *.gif *.webp"), ("All files", "*.*")]
        )
        if path:
            self._open_image(path)

    def _open_image(self, path: str) -> None:
        if self._pending is not None:
            messagebox.showwarning("Busy", "Wait for the current slice to finish.")
            return
        try:
            img = Image.open(path)
            img.load()
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load {path}: {e}")
            messagebox.showerror("Error", f"Failed to load image:\n{e}")
            return
        self._img = img
        self._base_name = sanitize_base_name(path)
        self._ctl.reset(CoordinateMapper(img.width, img.height))
        self._result = None
        self._set_html("")
        self._refresh_tree()
        self._sync_properties()
        self._redraw()
        self._status_var.set(
            f"{os.path.basename(path)}  —  {img.width}×{img.height}  —  "
            f"slices will be named {self._base_name}_1.jpeg, {self._base_name}_2.jpeg, …"
        )
        logger.info(f"Loaded {path} ({img.width}x{img.height})")

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------
    def _fit_view(self) -> None:
        """Stretch the backing canvas to the widget width, keeping aspect."""
        mapper = self._ctl.mapper
        cw = self._canvas.winfo_width() or mapper.canvas_width
        view_w = min(cw, mapper.canvas_width)
        mapper.set_view_size(view_w, view_w * mapper.canvas_height / mapper.canvas_width)

    def _to_screen(self, ox: float, oy: float):
        mapper = self._ctl.mapper
        return mapper.canvas_to_screen(*mapper.to_canvas(ox, oy))

    def _redraw(self) -> None:
        c = self._canvas
        c.delete("all")
        if self._img is None:
            return
        self._fit_view()
        mapper = self._ctl.mapper
        display = self._img.resize(
            (max(1, int(mapper.view_width)), max(1, int(mapper.view_height))), Image.LANCZOS
        )
        self._tk_img = ImageTk.PhotoImage(display)
        c.create_image(0, 0, anchor=tk.NW, image=self._tk_img)

        for sel in self._store:
            color = EDIT_COLOR if sel.id == self._ctl.editing_id else AREA_COLOR
            x0, y0 = self._to_screen(sel.x, sel.y)
            x1, y1 = self._to_screen(sel.right, sel.bottom)
            c.create_rectangle(x0, y0, x1, y1, outline=color, width=2)
            label = self._store.label(sel.id)
            c.create_rectangle(x0, y0 - 18, x0 + 7 * len(label) + 10, y0, fill=color, outline=color)
            c.create_text(x0 + 5, y0 - 9, anchor=tk.W, text=label, fill="#ffffff",
                          font=("Arial", 9))

        editing = self._ctl.editing
        if editing is not None:
            positions = handle_positions(self._ctl.canvas_rect(editing))
            for name in HANDLES:
                hx, hy = mapper.canvas_to_screen(*positions[name])
                c.create_rectangle(hx - HANDLE_SIZE / 2, hy - HANDLE_SIZE / 2,
                                   hx + HANDLE_SIZE / 2, hy + HANDLE_SIZE / 2,
                                   fill="#ffffff", outline=EDIT_COLOR)

        draft = self._ctl.draft_rect
        if draft is not None:
            x, y, w, h = draft
            sx0, sy0 = mapper.canvas_to_screen(x, y)
            sx1, sy1 = mapper.canvas_to_screen(x + w, y + h)
            c.create_rectangle(sx0, sy0, sx1, sy1, outline=EDIT_COLOR, width=2, dash=(4, 4))

    def _refresh_tree(self) -> None:
        self._tree.delete(*self._tree.get_children())
        for sel in self._store:
            self._tree.insert("", tk.END, iid=str(sel.id), text=self._store.label(sel.id),
                              values=(sel.kind.value, f"{sel.x}, {sel.y}, {sel.width} × {sel.height}"))
        if self._ctl.editing_id is not None and self._tree.exists(str(self._ctl.editing_id)):
            self._tree.selection_set(str(self._ctl.editing_id))

    def _set_html(self, html: str) -> None:
        self._html_text.delete("1.0", tk.END)
        self._html_text.insert("1.0", html)

    # ------------------------------------------------------------------
    # Pointer interaction
    # ------------------------------------------------------------------
    def _on_press(self, event: tk.Event) -> None:
        if self._img is None:
            self._load_image()
            return
        self._ctl.pointer_down(event.x, event.y)

    def _on_drag(self, event: tk.Event) -> None:
        if self._img is None:
            return
        if self._ctl.pointer_move(event.x, event.y) is not None:
            self._sync_properties()
            self._refresh_tree()
        self._redraw()

    def _on_release(self, event: tk.Event) -> None:
        if self._img is None:
            return
        was_selecting = self._ctl.mode is Mode.SELECTING
        sel = self._ctl.pointer_up(event.x, event.y)
        self._canvas.config(cursor="")
        if was_selecting and sel is not None:
            self._ctl.edit(sel.id)
            self._status_var.set(f"Added {self._store.label(sel.id)}")
        self._refresh_tree()
        self._sync_properties()
        self._redraw()

    def _on_leave(self, event: tk.Event) -> None:
        if self._ctl.mode is not Mode.IDLE:
            self._on_release(event)

    def _on_hover(self, event: tk.Event) -> None:
        if self._img is None or self._ctl.mode is not Mode.IDLE:
            return
        cx, cy = self._ctl.mapper.screen_to_canvas(event.x, event.y)
        self._canvas.config(cursor="fleur" if self._ctl.hit_handle(cx, cy) else "")

    def _new_selection(self, kind: SelectionKind) -> None:
        if self._img is None:
            return
        try:
            self._ctl.new_selection(kind)
        except SliceInProgressError as e:
            self._status_var.set(str(e))
            return
        self._canvas.config(cursor="crosshair")
        self._status_var.set("Click and drag on the image to create a selection area.")
        self._sync_properties()
        self._redraw()

    def _cancel_gesture(self) -> None:
        self._ctl.cancel()
        self._canvas.config(cursor="")
        self._redraw()

    # ------------------------------------------------------------------
    # Area list / properties
    # ------------------------------------------------------------------
    def _on_tree_select(self, _event: tk.Event) -> None:
        chosen = self._tree.selection()
        if not chosen or self._syncing:
            return
        self._ctl.edit(int(chosen[0]))
        self._sync_properties()
        self._redraw()

    def _delete_selected(self) -> None:
        chosen = self._tree.selection()
        if not chosen:
            return
        self._ctl.delete(int(chosen[0]))
        self._refresh_tree()
        self._sync_properties()
        self._redraw()

    def _sync_properties(self) -> None:
        """Push the edited area's fields into the property entries."""
        self._syncing = True
        sel = self._ctl.editing
        for key, var in self._vars.items():
            value = "" if sel is None else getattr(sel, key)
            var.set(value.value if isinstance(value, SelectionKind) else str(value))
        self._syncing = False

    def _apply_edit(self, action) -> None:
        try:
            updated = action()
        except InvalidSelectionError as e:
            self._status_var.set(str(e))
            return
        if updated is not None:
            self._refresh_tree()
            self._redraw()

    def _on_geometry_change(self, field: str) -> None:
        if self._syncing:
            return
        value = self._vars[field].get()
        self._apply_edit(lambda: self._ctl.set_geometry(field, value))

    def _on_field_change(self, key: str) -> None:
        if self._syncing:
            return
        value = self._vars[key].get()
        setters = {
            "url": self._ctl.set_url,
            "text": self._ctl.set_text,
            "font_size": self._ctl.set_font_size,
            "text_align": self._ctl.set_text_align,
            "kind": self._ctl.set_kind,
        }
        self._apply_edit(lambda: setters[key](value))

    def _pick_color(self, which: str) -> None:
        sel = self._ctl.editing
        if sel is None:
            return
        current = sel.background_color if which == "background" else sel.text_color
        _rgb, hex_color = colorchooser.askcolor(color=current, parent=self)
        if not hex_color:
            return
        if which == "background":
            self._apply_edit(lambda: self._ctl.set_colors(background=hex_color))
        else:
            self._apply_edit(lambda: self._ctl.set_colors(text=hex_color))

    # ------------------------------------------------------------------
    # Slicing
    # ------------------------------------------------------------------
    def _ensure_image(self) -> bool:
        if self._img is None:
            messagebox.showwarning("No image", "Load an image first.")
            return False
        return True

    def _slice(self) -> None:
        if not self._ensure_image() or self._pending is not None:
            return
        self._ctl.begin_slice()
        self._slice_btn.state(["disabled"])
        self._status_var.set("Slicing…")
        self._pending = self._pool.submit(
            export.slice_image, self._img, self._store.snapshot(), self._base_name
        )
        self.after(POLL_MS, self._poll_slice)

    def _poll_slice(self) -> None:
        future = self._pending
        if future is None:
            return
        if not future.done():
            self.after(POLL_MS, self._poll_slice)
            return
        self._pending = None
        self._ctl.finish_slice()
        self._slice_btn.state(["!disabled"])
        try:
            self._result = future.result()
        except InvalidFontSizeError as e:
            label = self._store.label(e.selection.id) or f"selection {e.selection.id}"
            messagebox.showerror("Invalid font size",
                                 f"{label}: font size {e.selection.font_size!r} must look like 16px, 1.2em or 1rem.")
            self._status_var.set("Slice failed: invalid font size.")
            return
        except RasterizeError as e:
            messagebox.showerror("Encoding failed", str(e))
            self._status_var.set("Slice failed.")
            return
        except Exception as e:
            logger.exception(f"Slice failed: {e}")
            messagebox.showerror("Slice failed", str(e))
            self._status_var.set("Slice failed.")
            return
        self._set_html(self._result.html)
        self._status_var.set(f"Sliced into {len(self._result.files)} image(s).")

    def _replace_urls(self) -> None:
        if self._result is None:
            messagebox.showwarning("Nothing sliced", "Slice the image first.")
            return
        urls = self._urls_text.get("1.0", tk.END)
        updated = replace_image_urls(self._result.html, referenced_files(self._result.plan), urls)
        self._set_html(updated)
        self._status_var.set("Image sources replaced.")

    # ------------------------------------------------------------------
    # Export actions
    # ------------------------------------------------------------------
    def _export_folder(self) -> None:
        if self._result is None:
            messagebox.showwarning("Nothing sliced", "Slice the image first.")
            return
        directory = filedialog.askdirectory(title="Choose output folder")
        if not directory:
            return
        paths = export.write_slices(self._result, directory)
        self._status_var.set(f"Saved {len(paths)} files → {directory}")

    def _export_json(self) -> None:
        if not self._ensure_image():
            return
        path = filedialog.asksaveasfilename(
            defaultextension=".json", filetypes=[("JSON", "*.json")]
        )
        if not path:
            return
        export.export_json(self._img.width, self._img.height, self._store.snapshot(), path,
                           self._base_name)
        self._status_var.set(f"Saved JSON → {os.path.basename(path)}")

    def _on_close(self) -> None:
        self._pool.shutdown(wait=False)
        self.destroy()
