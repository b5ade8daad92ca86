# viewer_style.py
# Shared colors and fonts for the TGA viewer widgets.

BG_MAIN = "#f0f2f5"
BG_TOOLBAR = "#2d3e50"
BG_PANEL = "#ffffff"
BG_BUTTON = "#3c5a78"
FG_BUTTON = "#ffffff"
FG_TEXT = "#1f2d3a"
FG_SUBTEXT = "#5b6b7a"

FONT_HEADER = ("Segoe UI", 11, "bold")
FONT_TEXT = ("Segoe UI", 10)
FONT_MONO = ("Consolas", 9)
FONT_BUTTON = ("Segoe UI", 10, "bold")

# checkerboard behind transparent pixels
CHECKER_LIGHT = (204, 204, 204, 255)
CHECKER_DARK = (153, 153, 153, 255)
CHECKER_SIZE = 8
