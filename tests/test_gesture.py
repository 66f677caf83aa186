import threading
import unittest
from nxt_lcp.gesture import gesture_to_power, CoalescingCommandQueue, GestureDriver
from nxt_lcp.interface import NXTBrick
from nxt_lcp.commands import Opcode
from nxt_lcp.exceptions import ValidationError
from nxt_lcp.types import OutputMode, RunState

class TestGestureToPower(unittest.TestCase):
    def test_scaling(self):
        self.assertEqual(gesture_to_power(0.0), 0)
        self.assertEqual(gesture_to_power(0.25), 50)
        self.assertEqual(gesture_to_power(-0.1), -20)
        self.assertEqual(gesture_to_power(0.3), 60)

    def test_clamped(self):
        self.assertEqual(gesture_to_power(0.9), 100)
        self.assertEqual(gesture_to_power(-1.0), -100)

    def test_non_finite(self):
        self.assertEqual(gesture_to_power(float("nan")), 0)
        self.assertEqual(gesture_to_power(float("inf")), 0)

class TestCoalescingCommandQueue(unittest.TestCase):
    def test_latest_value_wins(self):
        queue = CoalescingCommandQueue()
        queue.put(0, 10)
        queue.put(2, 20)
        queue.put(0, 30)
        self.assertEqual(len(queue), 2)
        self.assertEqual(queue.superseded, 1)
        self.assertEqual(queue.get(timeout=0), (2, 20))
        self.assertEqual(queue.get(timeout=0), (0, 30))
        self.assertIsNone(queue.get(timeout=0))

    def test_bounded_by_ports(self):
        queue = CoalescingCommandQueue()
        for power in range(100):
            for port in range(3):
                queue.put(port, power)
        self.assertEqual(len(queue), 3)
        with self.assertRaises(ValidationError):
            queue.put(5, 0)

    def test_close_wakes_consumer(self):
        queue = CoalescingCommandQueue()
        results = []
        consumer = threading.Thread(target=lambda: results.append(queue.get()))
        consumer.start()
        queue.close()
        consumer.join(2)
        self.assertEqual(results, [None])
        queue.put(0, 1)
        self.assertEqual(len(queue), 0)

class TestGestureDriver(unittest.TestCase):
    def setUp(self):
        self.brick = NXTBrick(mock=True, show_communication=False)
        self.brick.connect("mock")
        self.mock = self.brick.serial

    def tearDown(self):
        self.brick.disconnect()

    def test_drain_sends_latest_per_port(self):
        driver = GestureDriver(self.brick)
        for i in range(10):
            driver.update(i / 20.0, -i / 20.0)
        self.assertEqual(driver.drain(), 2)
        self.assertEqual(self.mock.outputs[0]["power"], 90)
        self.assertEqual(self.mock.outputs[2]["power"], -90)
        self.assertEqual(self.mock.outputs[0]["mode"], OutputMode.MOTOR_ON)
        self.assertEqual(self.mock.outputs[2]["run"], RunState.RUNNING)
        self.assertEqual(len(self.mock.sent(Opcode.SET_OUTPUT_STATE)), 2)

    def test_worker_thread(self):
        driver = GestureDriver(self.brick)
        driver.start()
        driver.update(0.2, 0.4)
        for _ in range(200):
            if len(self.mock.sent(Opcode.SET_OUTPUT_STATE)) == 2:
                break
            threading.Event().wait(0.01)
        driver.stop()
        self.assertEqual(self.mock.outputs[0]["power"], 40)
        self.assertEqual(self.mock.outputs[2]["power"], 80)

    def test_worker_stops_on_closed_session(self):
        driver = GestureDriver(self.brick)
        self.brick.disconnect()
        driver.start()
        driver.update(0.5, 0.5)
        driver._worker.join(2)
        self.assertFalse(driver._worker.is_alive())
        self.assertTrue(driver.queue.closed)
        driver.stop()

if __name__ == '__main__':
    unittest.main()
