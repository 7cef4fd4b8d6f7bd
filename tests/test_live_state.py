import itertools
import unittest

from edurenfort.errors import InvalidTransition
from edurenfort.live_courses import generate_room_id, next_state, room_url, transition
from edurenfort.models import LiveCourse, LiveState


def fresh_live():
    return LiveCourse(is_active=False, is_ended=False)


class TestTransitions(unittest.TestCase):
    def test_state_from_flags(self):
        self.assertEqual(LiveCourse(is_active=False, is_ended=False).state, LiveState.scheduled)
        self.assertEqual(LiveCourse(is_active=True, is_ended=False).state, LiveState.live)
        self.assertEqual(LiveCourse(is_active=False, is_ended=True).state, LiveState.ended)

    def test_start_then_end(self):
        live = fresh_live()
        self.assertTrue(transition(live, LiveState.live))
        self.assertEqual((live.is_active, live.is_ended), (True, False))
        self.assertTrue(transition(live, LiveState.ended))
        self.assertEqual((live.is_active, live.is_ended), (False, True))

    def test_end_without_start(self):
        live = fresh_live()
        transition(live, LiveState.ended)
        self.assertEqual(live.state, LiveState.ended)

    def test_end_twice_is_noop(self):
        live = fresh_live()
        transition(live, LiveState.ended)
        self.assertFalse(transition(live, LiveState.ended))
        self.assertEqual((live.is_active, live.is_ended), (False, True))

    def test_start_while_live_is_noop(self):
        live = fresh_live()
        transition(live, LiveState.live)
        self.assertFalse(transition(live, LiveState.live))

    def test_ended_is_terminal(self):
        with self.assertRaises(InvalidTransition):
            next_state(LiveState.ended, LiveState.live)
        with self.assertRaises(InvalidTransition):
            next_state(LiveState.ended, LiveState.scheduled)

    def test_no_way_back_to_scheduled(self):
        with self.assertRaises(InvalidTransition):
            next_state(LiveState.live, LiveState.scheduled)

    def test_never_active_and_ended(self):
        for length in range(1, 6):
            for steps in itertools.product([LiveState.live, LiveState.ended], repeat=length):
                live = fresh_live()
                for target in steps:
                    try:
                        transition(live, target)
                    except InvalidTransition:
                        self.assertEqual(live.state, LiveState.ended)
                    self.assertFalse(live.is_active and live.is_ended, steps)


class TestRoom(unittest.TestCase):
    def test_room_ids_are_unique(self):
        ids = {generate_room_id() for _ in range(50)}
        self.assertEqual(len(ids), 50)
        self.assertTrue(all(room_id.startswith("edurenfort_") for room_id in ids))

    def test_room_url(self):
        self.assertEqual(room_url("edurenfort_abc"), "https://meet.jit.si/edurenfort_abc")
