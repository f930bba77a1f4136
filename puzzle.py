"""Free-form jigsaw engine: grid planning, piece groups, dragging and snapping.

Pieces are plain integer indices (``row * cols + col``).  A piece always
belongs to exactly one group; a group keeps its members at their correct
relative offsets from its anchor (the first piece it received), so only the
anchor's board position is stored.
"""
import math
import numbers
from collections import namedtuple
from dataclasses import dataclass, field

import numpy as np

# --- Puzzle Settings ---
DEFAULT_COMPLEXITY = 3
PIECE_SIZE = 100
GROUP_SNAP_THRESHOLD = 20

# (d_row, d_col) for the top, bottom, left and right neighbours.
NEIGHBOUR_STEPS = ((-1, 0), (1, 0), (0, -1), (0, 1))

PieceView = namedtuple("PieceView", "index row col group x y size in_tray")


class PuzzleConfigError(ValueError):
    """Raised when a puzzle is requested with an unusable complexity or image size."""


@dataclass
class Piece:
    index: int
    row: int
    col: int
    in_tray: bool = True


@dataclass
class Group:
    gid: int
    pieces: list = field(default_factory=list)
    x: float = 0
    y: float = 0

    @property
    def anchor(self):
        return self.pieces[0]

    def __len__(self):
        return len(self.pieces)


# --- Grid Planning ---
def round_half_up(value):
    return int(math.floor(value + 0.5))

def plan_grid(complexity_level=DEFAULT_COMPLEXITY, image_size=None):
    """Return ``(rows, cols)`` for a complexity level and optional ``(width, height)``.

    Landscape and square images keep ``complexity_level`` rows, portrait
    images keep ``complexity_level`` columns; the other side follows the
    aspect ratio.
    """
    if (isinstance(complexity_level, bool) or not isinstance(complexity_level, numbers.Integral)
            or complexity_level < 1):
        raise PuzzleConfigError(f"complexity level must be a positive integer, got {complexity_level!r}")
    level = int(complexity_level)
    if image_size is None:
        return level, level
    try:
        width, height = image_size
    except (TypeError, ValueError):
        raise PuzzleConfigError(f"image size must be a (width, height) pair, got {image_size!r}") from None
    for name, value in (("width", width), ("height", height)):
        if not isinstance(value, numbers.Real) or isinstance(value, bool) or not value > 0:
            raise PuzzleConfigError(f"image {name} must be positive, got {value!r}")
    aspect = width / height
    if aspect >= 1:
        return level, max(1, round_half_up(level * aspect))
    return max(1, round_half_up(level / aspect)), level


# --- Piece Registry ---
def create_pieces(rows, cols):
    return [Piece(r * cols + c, r, c) for r in range(rows) for c in range(cols)]

def shuffle_tray(count, rng=None):
    """Uniformly shuffled tray order; ``rng`` is a numpy Generator."""
    if rng is None:
        rng = np.random.default_rng()
    return [int(i) for i in rng.permutation(count)]


class Puzzle:
    """Puzzle state owned by the caller: pieces, groups and the active drag.

    Pointer coordinates are screen coordinates; group positions are relative
    to ``board_origin``.
    """

    def __init__(self, complexity_level=DEFAULT_COMPLEXITY, image_size=None, piece_size=PIECE_SIZE,
                 snap_threshold=GROUP_SNAP_THRESHOLD, board_origin=(0, 0), seed=None, on_solved=None):
        if not piece_size > 0:
            raise PuzzleConfigError(f"piece size must be positive, got {piece_size!r}")
        if snap_threshold < 0:
            raise PuzzleConfigError(f"snap threshold must not be negative, got {snap_threshold!r}")
        self.rows, self.cols = plan_grid(complexity_level, image_size)
        self.piece_size = piece_size
        self.snap_threshold = snap_threshold
        self.board_origin = tuple(board_origin)
        self.board_width = self.cols * piece_size
        self.board_height = self.rows * piece_size
        self.default_position = ((self.board_width - piece_size) // 2,
                                 (self.board_height - piece_size) // 2)

        self.pieces = create_pieces(self.rows, self.cols)
        self.groups = {}
        self.group_of = []
        for piece in self.pieces:
            self.groups[piece.index] = Group(piece.index, [piece.index])
            self.group_of.append(piece.index)
        self.tray_order = shuffle_tray(len(self.pieces), np.random.default_rng(seed))

        self._dragging = None
        self._drag_offset = None
        self.solved = False
        self._solved_listeners = []
        if on_solved is not None:
            self._solved_listeners.append(on_solved)
        self.check_completion()

    def __repr__(self):
        return f"<Puzzle {self.rows}x{self.cols} groups={len(self.groups)}>"

    # --- Lookup ---
    def _piece(self, piece):
        if isinstance(piece, Piece):
            return piece
        if not 0 <= piece < len(self.pieces):
            raise IndexError(f"no piece {piece!r} in a {self.rows}x{self.cols} puzzle")
        return self.pieces[piece]

    def piece_at(self, row, col):
        if 0 <= row < self.rows and 0 <= col < self.cols:
            return self.pieces[row * self.cols + col]
        return None

    def find_group(self, piece):
        return self.groups[self.group_of[self._piece(piece).index]]

    def position_of(self, piece, group=None):
        piece = self._piece(piece)
        if group is None:
            group = self.find_group(piece)
        anchor = self.pieces[group.anchor]
        return (group.x + (piece.col - anchor.col) * self.piece_size,
                group.y + (piece.row - anchor.row) * self.piece_size)

    @property
    def group_count(self):
        return len(self.groups)

    def layout(self):
        """Yield a ``PieceView`` per piece for the renderer."""
        for piece in self.pieces:
            group = self.find_group(piece)
            x, y = self.position_of(piece, group)
            yield PieceView(piece.index, piece.row, piece.col, group.gid, x, y,
                            self.piece_size, piece.in_tray)

    # --- Groups ---
    def merge_into(self, source, target):
        """Move every piece of ``source`` into ``target`` and retire ``source``."""
        if source is target:
            return target
        for index in source.pieces:
            self.group_of[index] = target.gid
        target.pieces.extend(source.pieces)
        del self.groups[source.gid]
        self.check_completion()
        return target

    def try_group_snap(self, group):
        """Merge ``group`` into the first other group it lines up with.

        Returns the surviving group, or None when nothing was close enough.
        """
        if self.groups.get(group.gid) is not group:
            return None
        size = self.piece_size
        for index in list(group.pieces):
            piece = self.pieces[index]
            px, py = self.position_of(piece, group)
            for d_row, d_col in NEIGHBOUR_STEPS:
                other = self.piece_at(piece.row + d_row, piece.col + d_col)
                if other is None or other.in_tray:
                    continue
                target = self.find_group(other)
                if target is group:
                    continue
                qx, qy = self.position_of(other, target)
                err_x = (qx - px) - d_col * size
                err_y = (qy - py) - d_row * size
                if abs(err_x) <= self.snap_threshold and abs(err_y) <= self.snap_threshold:
                    return self.merge_into(group, target)
        return None

    # --- Dragging ---
    @property
    def dragging(self):
        return self._dragging

    @property
    def drag_offset(self):
        return self._drag_offset

    def to_board(self, pointer):
        return pointer[0] - self.board_origin[0], pointer[1] - self.board_origin[1]

    def on_drag_start(self, pointer, piece):
        """Begin dragging the group owning ``piece``; returns that group.

        A piece still in the tray is placed at the default board position
        first.  Ignored (returns None) while another drag is active.
        """
        if self._dragging is not None:
            return None
        group = self.find_group(piece)
        if self._piece(piece).in_tray:
            for index in group.pieces:
                self.pieces[index].in_tray = False
            group.x, group.y = self.default_position
        bx, by = self.to_board(pointer)
        self._drag_offset = (bx - group.x, by - group.y)
        self._dragging = group
        return group

    def on_drag_move(self, pointer):
        if self._dragging is None:
            return
        bx, by = self.to_board(pointer)
        self._dragging.x = bx - self._drag_offset[0]
        self._dragging.y = by - self._drag_offset[1]

    def on_drag_end(self, pointer):
        """Finish the drag at ``pointer`` and try to snap; returns the merged group or None."""
        if self._dragging is None:
            return None
        self.on_drag_move(pointer)
        group = self._dragging
        self._dragging = None
        self._drag_offset = None
        return self.try_group_snap(group)

    # --- Completion ---
    def is_solved(self):
        return len(self.groups) == 1

    def add_solved_listener(self, listener):
        self._solved_listeners.append(listener)
        if self.solved:
            listener(self)

    def check_completion(self):
        if not self.solved and self.is_solved():
            self.solved = True
            for listener in self._solved_listeners:
                listener(self)
        return self.solved


def create_puzzle(complexity_level=DEFAULT_COMPLEXITY, image_size=None, **options):
    return Puzzle(complexity_level, image_size, **options)
