from nxt_lcp import NXTBrick, SensorKind, SensorMode, OutputMode, RegulationMode, RunState
from nxt_lcp.exceptions import DeviceNotFoundError

# create interface and connect
# Use mock=True to talk to a simulated brick
brick = NXTBrick(show_communication=True, mock=False)

try:
    brick.connect('/dev/rfcomm0')
except DeviceNotFoundError:
    print("Could not connect to brick")
    raise SystemExit(1)

# disconnect() stops all motors and releases the sensors on exit
with brick:
    print(brick.get_device_info())
    print(f"Battery: {brick.get_battery_level():.2f} V")

    # touch sensor on port 0
    brick.set_input_mode(0, SensorKind.SWITCH, SensorMode.BOOLEAN)
    print(brick.get_input_values(0))

    # one turn of motor A
    brick.set_output_state(0, 75, OutputMode.MOTOR_ON | OutputMode.REGULATED,
                           RegulationMode.MOTOR_SPEED, 0, RunState.RUNNING, 360)
    brick.play_tone(440, 200)
