import logging
import tkinter as tk
from tkinter import filedialog, messagebox
from pathlib import Path
from PIL import Image, ImageTk
from tgadecoder import load_tga, describe_tga
from tgaformat import PixelFormat
from loader import pixel_array, to_pil_image
import viewer_style as style

logger = logging.getLogger(__name__)

ZOOM_STEP = 1.25
SWATCH_COLUMNS = 16
SWATCH_SIZE = 16

# ==== Utility functions ====
def checkerboard(width: int, height: int) -> Image.Image:
    """Background that makes transparent pixels visible."""
    board = Image.new("RGBA", (width, height), style.CHECKER_LIGHT)
    size = style.CHECKER_SIZE
    for y in range(0, height, size):
        for x in range((y // size % 2) * size, width, size * 2):
            board.paste(style.CHECKER_DARK, (x, y, min(x + size, width), min(y + size, height)))
    return board

def flatten_rgba(img: Image.Image) -> Image.Image:
    if img.width == 0 or img.height == 0:
        return img
    return Image.alpha_composite(checkerboard(img.width, img.height), img)

def hex_color(r, g, b) -> str:
    return f"#{r:02x}{g:02x}{b:02x}"

# ==== TGA Viewer ====
class TGAViewer(tk.Frame):
    """Canvas with zoom/pan plus a side panel describing the decoded file."""

    def __init__(self, master, file_path=None):
        super().__init__(master, bg=style.BG_MAIN)
        self.master = master
        self.tga = None
        self.image = None
        self.photo = None
        self.thumb_photo = None
        self.zoom = 1.0
        self.file_path = file_path

        self._build_toolbar()
        body = tk.Frame(self, bg=style.BG_MAIN)
        body.pack(fill="both", expand=True, padx=10, pady=10)
        self._build_canvas(body)
        self._build_side_panel(body)

        self.status = tk.Label(self, text="No file loaded", anchor="w",
                               font=style.FONT_TEXT, bg=style.BG_TOOLBAR, fg=style.FG_BUTTON, padx=8)
        self.status.pack(side="bottom", fill="x")

        if file_path:
            self.load_file(file_path)

    # ==== Layout ====
    def _build_toolbar(self):
        bar = tk.Frame(self, bg=style.BG_TOOLBAR, padx=8, pady=6)
        bar.pack(side="top", fill="x")
        actions = [("Open TGA", self.open_tga), ("Zoom In", self.zoom_in),
                   ("Zoom Out", self.zoom_out), ("Actual Size", self.reset_zoom)]
        for label, action in actions:
            button = tk.Button(bar, text=label, command=action, relief="flat", padx=10, pady=4,
                               bg=style.BG_BUTTON, fg=style.FG_BUTTON, font=style.FONT_BUTTON)
            button.pack(side="left", padx=4)

    def _build_canvas(self, parent):
        holder = tk.Frame(parent, bg=style.BG_MAIN)
        holder.pack(side="left", fill="both", expand=True, padx=(0, 10))
        holder.rowconfigure(0, weight=1)
        holder.columnconfigure(0, weight=1)
        self.canvas = tk.Canvas(holder, bg=style.BG_PANEL, cursor="crosshair", highlightthickness=0)
        ybar = tk.Scrollbar(holder, orient="vertical", command=self.canvas.yview)
        xbar = tk.Scrollbar(holder, orient="horizontal", command=self.canvas.xview)
        self.canvas.configure(xscrollcommand=xbar.set, yscrollcommand=ybar.set)
        self.canvas.grid(row=0, column=0, sticky="nsew")
        ybar.grid(row=0, column=1, sticky="ns")
        xbar.grid(row=1, column=0, sticky="ew")

        bindings = {
            "<Button-1>": self.show_pixel,
            "<ButtonPress-3>": lambda e: self.canvas.scan_mark(e.x, e.y),
            "<B3-Motion>": lambda e: self.canvas.scan_dragto(e.x, e.y, gain=1),
            "<MouseWheel>": lambda e: self.zoom_in() if e.delta > 0 else self.zoom_out(),
            "<Button-4>": lambda e: self.zoom_in(),   # X11 wheel up
            "<Button-5>": lambda e: self.zoom_out(),  # X11 wheel down
        }
        for sequence, handler in bindings.items():
            self.canvas.bind(sequence, handler)

    def _heading(self, parent, text, top=0):
        tk.Label(parent, text=text, font=style.FONT_HEADER, bg=style.BG_PANEL,
                 fg=style.FG_TEXT).pack(anchor="w", pady=(top, 4))

    def _build_side_panel(self, parent):
        panel = tk.Frame(parent, bg=style.BG_PANEL, bd=1, relief="ridge", padx=12, pady=12)
        panel.pack(side="right", fill="y")

        self._heading(panel, "Pixel")
        row = tk.Frame(panel, bg=style.BG_PANEL)
        row.pack(anchor="w", fill="x")
        self.swatch = tk.Canvas(row, width=48, height=48, bg=style.BG_MAIN, bd=1, relief="solid")
        self.swatch.pack(side="left", padx=(0, 8))
        self.pixel_text = tk.Label(row, text="Click the image", justify="left",
                                   font=style.FONT_MONO, bg=style.BG_PANEL, fg=style.FG_SUBTEXT)
        self.pixel_text.pack(side="left", anchor="n")

        self._heading(panel, "File", top=12)
        self.info_box = tk.Text(panel, width=42, height=18, wrap="none", relief="flat",
                                font=style.FONT_MONO, bg=style.BG_MAIN, fg=style.FG_TEXT)
        self.info_box.pack(anchor="w")
        self.info_box.configure(state="disabled")

        self._heading(panel, "Palette", top=12)
        self.palette_view = tk.Canvas(panel, width=SWATCH_COLUMNS * SWATCH_SIZE, height=SWATCH_SIZE,
                                      bg=style.BG_PANEL, highlightthickness=0)
        self.palette_view.pack(anchor="w")

        self._heading(panel, "Postage Stamp", top=12)
        self.thumb_view = tk.Label(panel, text="None", font=style.FONT_TEXT,
                                   bg=style.BG_PANEL, fg=style.FG_SUBTEXT)
        self.thumb_view.pack(anchor="w")

    # ==== File Handling ====
    def open_tga(self):
        path = filedialog.askopenfilename(filetypes=[("Truevision TGA", "*.tga"), ("All files", "*.*")])
        if path:
            self.load_file(path)

    def load_file(self, file_path):
        try:
            tga = load_tga(Path(file_path))
            image = to_pil_image(tga)
        except Exception as e:
            logger.exception("Could not open %s", file_path)
            messagebox.showerror("Error", f"Failed to open TGA file:\n{e}")
            return
        self.tga, self.image, self.file_path = tga, image, file_path
        self.zoom = 1.0
        self.redraw()
        self.fill_info()
        self.fill_palette()
        self.fill_thumbnail()
        self.status.config(text=f"{Path(file_path).name}  {tga.width}x{tga.height}  {tga.pixel_format.value}")

    # ==== Display & Zoom ====
    def redraw(self):
        if self.image is None:
            return
        size = (max(1, round(self.image.width * self.zoom)), max(1, round(self.image.height * self.zoom)))
        self.photo = ImageTk.PhotoImage(flatten_rgba(self.image.resize(size, Image.NEAREST)))
        self.canvas.delete("all")
        self.canvas.create_image(0, 0, anchor="nw", image=self.photo)
        self.canvas.configure(scrollregion=(0, 0, size[0], size[1]))

    def set_zoom(self, zoom):
        self.zoom = min(max(zoom, 1 / 32), 64)
        self.redraw()

    def zoom_in(self): self.set_zoom(self.zoom * ZOOM_STEP)
    def zoom_out(self): self.set_zoom(self.zoom / ZOOM_STEP)
    def reset_zoom(self): self.set_zoom(1.0)

    # ==== Pixel info ====
    def show_pixel(self, event):
        if self.image is None:
            return
        px = int(self.canvas.canvasx(event.x) // self.zoom)
        py = int(self.canvas.canvasy(event.y) // self.zoom)
        if not (0 <= px < self.image.width and 0 <= py < self.image.height):
            return
        r, g, b, a = self.image.getpixel((px, py))
        lines = [f"x={px} y={py}", f"R={r} G={g}", f"B={b} A={a}"]
        if self.tga.pixel_format == PixelFormat.INDEXED_8:
            lines.append(f"index={pixel_array(self.tga)[py, px, 0]}")
        self.pixel_text.config(text="\n".join(lines))
        self.swatch.config(bg=hex_color(r, g, b))

    # ==== Side panel ====
    def fill_info(self):
        lines = [f"{key:<16} {value}" for key, value in describe_tga(self.tga).items()]
        self.info_box.configure(state="normal")
        self.info_box.delete("1.0", "end")
        self.info_box.insert("end", "\n".join(lines))
        self.info_box.configure(state="disabled")

    def fill_palette(self):
        self.palette_view.delete("all")
        colors = self.tga.palette[:256]
        rows = max(1, -(-len(colors) // SWATCH_COLUMNS))
        self.palette_view.configure(height=rows * SWATCH_SIZE)
        for i, color in enumerate(colors):
            left = (i % SWATCH_COLUMNS) * SWATCH_SIZE
            top = (i // SWATCH_COLUMNS) * SWATCH_SIZE
            self.palette_view.create_rectangle(left, top, left + SWATCH_SIZE, top + SWATCH_SIZE,
                                               fill=hex_color(color.r, color.g, color.b), width=0)

    def fill_thumbnail(self):
        if self.tga.thumbnail is None:
            self.thumb_photo = None
            self.thumb_view.config(image="", text="None")
            return
        self.thumb_photo = ImageTk.PhotoImage(flatten_rgba(to_pil_image(self.tga, thumbnail=True)))
        self.thumb_view.config(image=self.thumb_photo, text="")

# ==== Main ====
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    root = tk.Tk()
    root.title("TGA Viewer")
    root.geometry("1200x800")
    TGAViewer(root).pack(fill="both", expand=True)
    root.mainloop()
