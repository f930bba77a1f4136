import argparse, sys
import numpy as np
import pygame
from PIL import Image, ImageDraw

from puzzle import DEFAULT_COMPLEXITY, PuzzleConfigError, create_puzzle

# --- Global Settings ---
FPS = 60
MARGIN = 20
TRAY_COLUMNS = 4
TRAY_THUMB_SIZE = 50
TRAY_GAP = 8
MIN_WINDOW_HEIGHT = 480
MESSAGE_DURATION_MS = 3000
SNAP_SOUND_FILE = "snap.mp3"

BACKGROUND_TOP = (30, 30, 30)
BACKGROUND_BOTTOM = (60, 60, 60)
BOARD_COLOR = (75, 75, 75)
TRAY_COLOR = (45, 45, 45)
GRADIENT_INNER = (0x66, 0x7e, 0xea)
GRADIENT_OUTER = (0x76, 0x4b, 0xa2)
CIRCLE_OUTLINE = (0x33, 0x33, 0x33)

FONTS = {}          # Cache for fonts keyed by size.

def get_font(size):
    """Return a cached font of the given size."""
    if size not in FONTS:
        FONTS[size] = pygame.font.SysFont("arial", size)
    return FONTS[size]

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Snap Jigsaw")
    parser.add_argument("--image", type=str, default=None,
                        help="picture to cut into pieces (default: generated circle)")
    parser.add_argument("--complexity", type=int, default=DEFAULT_COMPLEXITY,
                        help="pieces along the shorter side of the picture")
    parser.add_argument("--seed", type=int, default=None, help="seed for the tray order")
    return parser.parse_args(argv)

# --- Artwork ---
def generate_circle_image(width, height):
    """Default artwork: a circle filled with a radial gradient on a transparent background."""
    radius = min(width, height) / 2 - 10
    cx, cy = width / 2, height / 2
    ys, xs = np.mgrid[0:height, 0:width]
    dist = np.hypot(xs + 0.5 - cx, ys + 0.5 - cy)
    t = np.clip(dist / radius, 0, 1)[..., None]
    inner = np.array(GRADIENT_INNER, dtype=float)
    outer = np.array(GRADIENT_OUTER, dtype=float)
    rgb = inner * (1 - t) + outer * t
    alpha = np.where(dist <= radius, 255, 0)[..., None]
    pixels = np.concatenate([rgb, alpha], axis=2).astype(np.uint8)
    image = Image.fromarray(pixels, "RGBA")
    draw = ImageDraw.Draw(image)
    draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], outline=CIRCLE_OUTLINE, width=3)
    return image

def load_source_image(path):
    with Image.open(path) as img:
        return img.convert("RGBA")

def fit_image(image, puzzle):
    """Stretch the picture over the whole board so every cell is exactly one piece."""
    return image.resize((puzzle.board_width, puzzle.board_height), Image.Resampling.LANCZOS)

def pil_to_surface(image):
    return pygame.image.frombytes(image.tobytes(), image.size, "RGBA")

def cut_piece_surfaces(board_surface, puzzle):
    size = puzzle.piece_size
    surfaces = []
    for piece in puzzle.pieces:
        crop_rect = pygame.Rect(piece.col * size, piece.row * size, size, size)
        piece_surface = board_surface.subsurface(crop_rect).copy()
        pygame.draw.rect(piece_surface, (0, 0, 0), piece_surface.get_rect(), 1)
        surfaces.append(piece_surface)
    return surfaces

# --- Input ---
def pointer_from_event(event, window_size):
    """Map a mouse or touch event to ``(kind, pos)`` with kind "down", "move" or "up"."""
    if event.type in (pygame.MOUSEBUTTONDOWN, pygame.MOUSEBUTTONUP, pygame.MOUSEMOTION):
        # SDL also reports touches as mouse events; the finger events cover them.
        if getattr(event, "touch", False):
            return None
        if event.type == pygame.MOUSEMOTION:
            return "move", event.pos
        if event.button != 1:
            return None
        return ("down" if event.type == pygame.MOUSEBUTTONDOWN else "up"), event.pos
    kinds = {pygame.FINGERDOWN: "down", pygame.FINGERMOTION: "move", pygame.FINGERUP: "up"}
    if event.type in kinds:
        return kinds[event.type], (event.x * window_size[0], event.y * window_size[1])
    return None


class PuzzleView:
    """Renders a puzzle and feeds pointer input into it."""

    def __init__(self, puzzle, image, snap_sound=None):
        self.puzzle = puzzle
        self.snap_sound = snap_sound
        size = puzzle.piece_size
        default_x, default_y = puzzle.default_position
        # A tray piece lands at the default position and keeps its pointer
        # offset, so every board corner must stay within pointer reach of every slot.
        puzzle.board_origin = (MARGIN, max(MARGIN, default_y - TRAY_GAP - TRAY_THUMB_SIZE // 2))
        self.board_rect = pygame.Rect(puzzle.board_origin, (puzzle.board_width, puzzle.board_height))
        tray_width = TRAY_COLUMNS * (TRAY_THUMB_SIZE + TRAY_GAP) + TRAY_GAP
        tray_rows = -(-len(puzzle.pieces) // TRAY_COLUMNS)
        tray_height = tray_rows * (TRAY_THUMB_SIZE + TRAY_GAP) + TRAY_GAP
        self.tray_rect = pygame.Rect(self.board_rect.right + MARGIN, self.board_rect.top,
                                     tray_width, max(tray_height, self.board_rect.height))
        slots = [self.slot_rect(n) for n in range(len(puzzle.pieces))]
        reach_x = max(r.centerx for r in slots) - default_x + puzzle.board_width - size
        reach_y = max(r.centery for r in slots) - default_y + puzzle.board_height - size
        self.window_size = (max(self.tray_rect.right, reach_x) + MARGIN,
                            max(MIN_WINDOW_HEIGHT, self.tray_rect.bottom + MARGIN, reach_y + MARGIN))

        self.surfaces = cut_piece_surfaces(pil_to_surface(image), puzzle)
        self.thumbnails = [pygame.transform.smoothscale(s, (TRAY_THUMB_SIZE, TRAY_THUMB_SIZE))
                           for s in self.surfaces]
        self.z_order = []   # group ids on the board, bottom to top
        self.message_until = None
        puzzle.add_solved_listener(self.on_solved)

    def on_solved(self, puzzle):
        print(f"Puzzle complete! {puzzle.rows} x {puzzle.cols} = {len(puzzle.pieces)} pieces")
        self.message_until = pygame.time.get_ticks() + MESSAGE_DURATION_MS

    def message_visible(self):
        return self.message_until is not None and pygame.time.get_ticks() < self.message_until

    def board_to_screen(self, x, y):
        return x + self.board_rect.x, y + self.board_rect.y

    def slot_rect(self, n):
        row, col = divmod(n, TRAY_COLUMNS)
        return pygame.Rect(self.tray_rect.x + TRAY_GAP + col * (TRAY_THUMB_SIZE + TRAY_GAP),
                           self.tray_rect.y + TRAY_GAP + row * (TRAY_THUMB_SIZE + TRAY_GAP),
                           TRAY_THUMB_SIZE, TRAY_THUMB_SIZE)

    def tray_slots(self):
        """Thumbnail rects for the pieces still in the tray, in tray order."""
        waiting = [i for i in self.puzzle.tray_order if self.puzzle.pieces[i].in_tray]
        return [(index, self.slot_rect(n)) for n, index in enumerate(waiting)]

    def piece_at_pointer(self, pos):
        size = self.puzzle.piece_size
        for gid in reversed(self.z_order):
            group = self.puzzle.groups[gid]
            for index in group.pieces:
                x, y = self.board_to_screen(*self.puzzle.position_of(index, group))
                if pygame.Rect(int(x), int(y), size, size).collidepoint(pos):
                    return index
        for index, rect in self.tray_slots():
            if rect.collidepoint(pos):
                return index
        return None

    def raise_group(self, gid):
        self.z_order = [g for g in self.z_order if g != gid and g in self.puzzle.groups]
        self.z_order.append(gid)

    def handle_pointer(self, kind, pos):
        if kind == "down":
            index = self.piece_at_pointer(pos)
            if index is None:
                return
            group = self.puzzle.on_drag_start(pos, index)
            if group is not None:
                self.raise_group(group.gid)
        elif kind == "move":
            self.puzzle.on_drag_move(pos)
        elif kind == "up":
            merged = self.puzzle.on_drag_end(pos)
            if merged is not None:
                self.raise_group(merged.gid)
                if self.snap_sound is not None:
                    self.snap_sound.play(fade_ms=1)

    def handle_events(self, events):
        """Dispatch a frame's events; consecutive moves collapse to the latest one."""
        pending_move = None
        for event in events:
            pointer = pointer_from_event(event, self.window_size)
            if pointer is None:
                continue
            kind, pos = pointer
            if kind == "move":
                pending_move = pos
                continue
            if pending_move is not None:
                self.handle_pointer("move", pending_move)
                pending_move = None
            self.handle_pointer(kind, pos)
        if pending_move is not None:
            self.handle_pointer("move", pending_move)

    # --- Drawing ---
    def draw_background_gradient(self, screen):
        width, height = screen.get_size()
        for y in range(height):
            ratio = y / height
            color = tuple(int(a * (1 - ratio) + b * ratio) for a, b in zip(BACKGROUND_TOP, BACKGROUND_BOTTOM))
            pygame.draw.line(screen, color, (0, y), (width, y))

    def draw_text(self, screen, text, pos, font_size=30, color=(255,255,255), shadow_color=(0,0,0), shadow_offset=(2,2)):
        """Draws text with a subtle drop shadow for improved legibility."""
        font = get_font(font_size)
        shadow_surface = font.render(text, True, shadow_color)
        screen.blit(shadow_surface, shadow_surface.get_rect(center=(pos[0]+shadow_offset[0], pos[1]+shadow_offset[1])))
        text_surface = font.render(text, True, color)
        screen.blit(text_surface, text_surface.get_rect(center=pos))

    def draw(self, screen):
        self.draw_background_gradient(screen)
        pygame.draw.rect(screen, BOARD_COLOR, self.board_rect)
        pygame.draw.rect(screen, TRAY_COLOR, self.tray_rect, border_radius=8)
        for index, rect in self.tray_slots():
            screen.blit(self.thumbnails[index], rect)
        for gid in self.z_order:
            group = self.puzzle.groups[gid]
            for index in group.pieces:
                screen.blit(self.surfaces[index], self.board_to_screen(*self.puzzle.position_of(index, group)))
        if self.message_visible():
            self.draw_text(screen, "Puzzle Complete!", self.board_rect.center, font_size=56, color=(255,215,0))


def main(argv=None):
    args = parse_args(argv)
    try:
        image = load_source_image(args.image) if args.image else None
        puzzle = create_puzzle(args.complexity, image.size if image is not None else None, seed=args.seed)
    except (OSError, PuzzleConfigError) as exc:
        print(f"Could not start puzzle: {exc}")
        return 1
    if image is None:
        image = generate_circle_image(puzzle.board_width, puzzle.board_height)
    else:
        image = fit_image(image, puzzle)
    print(f"New puzzle: {puzzle.rows} x {puzzle.cols} = {len(puzzle.pieces)} pieces")

    pygame.init()
    try:
        snap_sound = pygame.mixer.Sound(SNAP_SOUND_FILE)
    except (pygame.error, FileNotFoundError):
        snap_sound = None
    view = PuzzleView(puzzle, image, snap_sound)
    screen = pygame.display.set_mode(view.window_size)
    pygame.display.set_caption("Jigsaw Puzzle")
    clock = pygame.time.Clock()

    running = True
    while running:
        events = pygame.event.get()
        if any(event.type == pygame.QUIT for event in events):
            running = False
        view.handle_events(events)
        view.draw(screen)
        pygame.display.flip()
        clock.tick(FPS)
    pygame.quit()
    return 0

if __name__=="__main__":
    sys.exit(main())
