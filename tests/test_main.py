"""Tests for the pygame frontend; SDL runs on its dummy drivers, no window opens."""
import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pygame
import pytest
from PIL import Image

from main import (
    FONTS,
    GRADIENT_INNER,
    MARGIN,
    PuzzleView,
    fit_image,
    generate_circle_image,
    load_source_image,
    main,
    parse_args,
    pointer_from_event,
)
from puzzle import create_puzzle


@pytest.fixture(autouse=True)
def pygame_session():
    pygame.init()
    yield
    FONTS.clear()
    pygame.quit()


def make_view(complexity, image_size=None, seed=0):
    puzzle = create_puzzle(complexity, image_size, board_origin=(MARGIN, MARGIN), seed=seed)
    view = PuzzleView(puzzle, generate_circle_image(puzzle.board_width, puzzle.board_height))
    return puzzle, view


def drop_from_tray(view, index, board_x, board_y):
    """Drag a tray piece so it lands at board position (board_x, board_y)."""
    rect = dict(view.tray_slots())[index]
    view.handle_pointer("down", rect.center)
    ox, oy = view.puzzle.drag_offset
    view.handle_pointer("up", view.board_to_screen(board_x + ox, board_y + oy))


def test_parse_args_defaults():
    args = parse_args([])
    assert args.image is None
    assert args.complexity == 3
    assert args.seed is None
    args = parse_args(["--image", "cat.png", "--complexity", "5", "--seed", "9"])
    assert (args.image, args.complexity, args.seed) == ("cat.png", 5, 9)


def test_circle_image_has_gradient_and_transparent_corners():
    image = generate_circle_image(300, 300)
    assert image.size == (300, 300)
    assert image.mode == "RGBA"
    assert image.getpixel((0, 0))[3] == 0
    r, g, b, a = image.getpixel((150, 150))
    assert a == 255
    assert abs(r - GRADIENT_INNER[0]) <= 2 and abs(b - GRADIENT_INNER[2]) <= 2


def test_source_image_is_fitted_to_the_board(tmp_path):
    path = tmp_path / "wide.png"
    Image.new("RGB", (400, 300), (200, 10, 10)).save(path)
    image = load_source_image(path)
    puzzle = create_puzzle(3, image.size)
    fitted = fit_image(image, puzzle)
    assert (puzzle.rows, puzzle.cols) == (3, 4)
    assert fitted.size == (400, 300)
    assert fitted.mode == "RGBA"


def test_main_reports_bad_configuration(capsys):
    assert main(["--complexity", "0"]) == 1
    assert "Could not start puzzle" in capsys.readouterr().out


def test_main_reports_missing_image(tmp_path, capsys):
    assert main(["--image", str(tmp_path / "missing.png")]) == 1
    assert "Could not start puzzle" in capsys.readouterr().out


def test_mouse_and_touch_events_become_pointer_events():
    size = (200, 400)
    down = pygame.event.Event(pygame.MOUSEBUTTONDOWN, pos=(5, 6), button=1)
    right = pygame.event.Event(pygame.MOUSEBUTTONDOWN, pos=(5, 6), button=3)
    synthetic = pygame.event.Event(pygame.MOUSEBUTTONUP, pos=(5, 6), button=1, touch=True)
    motion = pygame.event.Event(pygame.MOUSEMOTION, pos=(7, 8), rel=(2, 2), buttons=(1, 0, 0))
    finger = pygame.event.Event(pygame.FINGERDOWN, x=0.5, y=0.25, touch_id=0, finger_id=0)
    lift = pygame.event.Event(pygame.FINGERUP, x=0.1, y=0.5, touch_id=0, finger_id=0)
    assert pointer_from_event(down, size) == ("down", (5, 6))
    assert pointer_from_event(right, size) is None
    assert pointer_from_event(synthetic, size) is None
    assert pointer_from_event(motion, size) == ("move", (7, 8))
    assert pointer_from_event(finger, size) == ("down", (100.0, 100.0))
    assert pointer_from_event(lift, size) == ("up", (20.0, 200.0))
    assert pointer_from_event(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_a), size) is None


def test_view_cuts_one_surface_per_piece():
    puzzle, view = make_view(2)
    assert len(view.surfaces) == 4
    assert all(s.get_size() == (puzzle.piece_size, puzzle.piece_size) for s in view.surfaces)
    assert len(view.tray_slots()) == 4
    assert [index for index, _ in view.tray_slots()] == puzzle.tray_order
    assert view.board_rect.topleft == (MARGIN, MARGIN)
    assert view.tray_rect.left > view.board_rect.right


def test_pressing_a_tray_piece_starts_a_drag():
    puzzle, view = make_view(2)
    index, rect = view.tray_slots()[0]
    view.handle_pointer("down", rect.center)
    assert puzzle.dragging is puzzle.find_group(index)
    assert not puzzle.pieces[index].in_tray
    assert view.z_order == [index]
    assert index not in [i for i, _ in view.tray_slots()]


def test_motion_within_a_frame_keeps_only_the_latest_position():
    puzzle, view = make_view(2)
    index, rect = view.tray_slots()[0]
    view.handle_pointer("down", rect.center)
    ox, oy = puzzle.drag_offset
    events = [
        pygame.event.Event(pygame.MOUSEMOTION, pos=(300, 300), rel=(0, 0), buttons=(1, 0, 0)),
        pygame.event.Event(pygame.MOUSEMOTION, pos=(310, 320), rel=(10, 20), buttons=(1, 0, 0)),
    ]
    view.handle_events(events)
    group = puzzle.find_group(index)
    assert view.board_to_screen(group.x + ox, group.y + oy) == (310, 320)
    view.handle_events([pygame.event.Event(pygame.MOUSEBUTTONUP, pos=(310, 320), button=1)])
    assert puzzle.dragging is None
    assert view.piece_at_pointer(view.board_to_screen(group.x + 1, group.y + 1)) == index


def test_pressing_empty_space_does_nothing():
    puzzle, view = make_view(2)
    view.handle_pointer("down", (1, 1))
    assert puzzle.dragging is None
    view.handle_pointer("up", (1, 1))
    assert puzzle.group_count == 4


def test_solving_through_the_view_shows_the_message(capsys):
    puzzle, view = make_view(1, (200, 100))
    assert not view.message_visible()
    drop_from_tray(view, 0, 0, 0)
    drop_from_tray(view, 1, 103, -4)
    assert puzzle.is_solved()
    assert view.z_order == [puzzle.find_group(0).gid]
    assert view.message_visible()
    assert "Puzzle complete!" in capsys.readouterr().out
    screen = pygame.Surface(view.window_size)
    view.draw(screen)
    assert screen.get_at(view.board_to_screen(100, 50))[3] == 255


def test_single_piece_puzzle_shows_the_message_at_once():
    puzzle, view = make_view(1)
    assert puzzle.is_solved()
    assert view.message_visible()


@pytest.mark.parametrize("complexity,image_size", [(3, (500, 300)), (3, (300, 600)), (5, None), (2, None)])
def test_every_tray_piece_can_reach_every_board_corner(complexity, image_size):
    puzzle, view = make_view(complexity, image_size)
    width, height = view.window_size
    dx, dy = puzzle.default_position
    corners = [(0, 0), (puzzle.board_width - puzzle.piece_size, puzzle.board_height - puzzle.piece_size)]
    for _, rect in view.tray_slots():
        ox = rect.centerx - view.board_rect.x - dx
        oy = rect.centery - view.board_rect.y - dy
        for x, y in corners:
            px, py = view.board_to_screen(x + ox, y + oy)
            assert 0 <= px < width and 0 <= py < height


def test_wide_board_piece_from_last_tray_slot_lands_on_far_edge():
    puzzle, view = make_view(3, (500, 300))
    index, rect = view.tray_slots()[-1]
    view.handle_pointer("down", rect.center)
    ox, oy = puzzle.drag_offset
    target = view.board_to_screen(puzzle.board_width - puzzle.piece_size + ox, oy)
    assert target[0] < view.window_size[0]
    view.handle_pointer("up", target)
    assert puzzle.position_of(index) == (puzzle.board_width - puzzle.piece_size, 0)
