import os

# Repeat budget sentinel
UNBOUNDED = -1

# Delay floor between sends (seconds)
MIN_DELAY_SECONDS = 7

# Serial line
SERIAL_BAUDRATE = int(os.getenv('THERMAL_REPEAT_BAUDRATE') or 19200)
SERIAL_TIMEOUT = 1.0
SERIAL_BUFFER_SIZE = 4 * 1024
TEXT_ENCODING = 'cp1252'

# Print spooler
SPOOLER_JOB_NAME = str(os.getenv('THERMAL_REPEAT_JOB_NAME') or '').strip() or 'ThermalRepeat'
SPOOLER_DATATYPE = 'RAW'

# Logging
LOG_LEVEL = str(os.getenv('THERMAL_REPEAT_LOG_LEVEL') or '').strip().upper() or 'INFO'
