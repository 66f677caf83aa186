import logging
from nxt_lcp import NXTBrick, SensorKind, SensorMode, OutputMode, RegulationMode, RunState
from nxt_lcp.exceptions import DeviceNotFoundError, ValidationError

# Configure logging to see output
logging.basicConfig(level=logging.DEBUG)

def test_mock_interface():
    print("\n--- Testing Mock Interface ---")
    brick = NXTBrick(show_communication=True, mock=True)

    # Test Connect
    brick.connect('mock_port')
    print("Connected to mock port.")

    # Test Device Info
    info = brick.get_device_info()
    print(f"Device info: {info}")
    assert info.name == "NXT"

    # Test Battery
    volts = brick.get_battery_level()
    print(f"Battery: {volts} V")
    assert volts == 7.4

    # Test Sensor
    brick.set_input_mode(1, SensorKind.SWITCH, SensorMode.BOOLEAN)
    value = brick.get_input_values(1)
    print(f"Input 1: {value}")
    assert value.kind == SensorKind.SWITCH and value.mode == SensorMode.BOOLEAN

    # Test Motor
    brick.set_output_state(2, -40, OutputMode.MOTOR_ON | OutputMode.BRAKE, RegulationMode.IDLE, 0, RunState.RUNNING)
    state = brick.get_output_state(2)
    print(f"Output 2: {state}")
    assert state.power == -40

    # Test Program Name
    try:
        brick.start_program("a_very_long_program.rxe")
        print("Error: Should have rejected the name.")
    except ValidationError as e:
        print(f"Caught expected exception: {e}")

    brick.disconnect()
    print("Mock Interface Test Passed.")

def test_real_interface_failure():
    print("\n--- Testing Real Interface Failure ---")
    brick = NXTBrick(show_communication=True, mock=False)

    try:
        brick.connect('INVALID_PORT', baud_rate=9600)
        print("Error: Should have failed to connect.")
    except DeviceNotFoundError as e:
        print(f"Caught expected exception: {e}")
    except Exception as e:
        print(f"Caught unexpected exception: {e}")
        raise

    print("Real Interface Failure Test Passed.")

if __name__ == "__main__":
    test_mock_interface()
    test_real_interface_failure()
