"""
Engine constants - all magic numbers in one place.
NO HOST DEPENDENCIES.
"""

# =============================================================================
# DURATIONS (all in milliseconds)
# =============================================================================
MOVE_DURATION_MS = 500
TURN_DURATION_MS = 300
SHOW_HIDE_DURATION_MS = 300
SPEECH_DURATION_MS = 1000
UNKNOWN_OPERATION_DELAY_MS = 200

# =============================================================================
# MOTION
# =============================================================================
DIRECTIONAL_MOVE_DISTANCE = 50   # moveUp/Down/Left/Right offset
STEP_SIZE = 20                   # stage units per "step"
STAGE_LIMIT = 150                # moveSteps clamps each axis to +/- this
GOTO_GRID_LIMIT = 15             # gotoXY clamps raw values to +/- this
GOTO_GRID_SCALE = 10             # ...then multiplies by this

# =============================================================================
# DEFAULT PARAMETERS
# =============================================================================
DEFAULT_STEPS = 10
DEFAULT_DEGREES = 15
DEFAULT_WAIT_SECONDS = 1
DEFAULT_REPEAT_TIMES = 10
DEFAULT_SAY_MESSAGE = "Hello!"
DEFAULT_THINK_MESSAGE = "Hmm..."

# =============================================================================
# CONTROL
# =============================================================================
FOREVER_ITERATIONS = 3           # repeatForever is bounded to this many passes

# =============================================================================
# ACTOR DEFAULTS
# =============================================================================
INITIAL_X = 0.0
INITIAL_Y = 0.0
INITIAL_HEADING = 0.0
INITIAL_SCALE = 1.0
