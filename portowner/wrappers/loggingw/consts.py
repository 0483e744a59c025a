DEFAULT_STREAM_FORMATTER: str = "%(levelname)s | %(threadName)s | %(name)s | %(message)s"
DEFAULT_MESSAGE_FORMATTER: str = "%(message)s"

DEFAULT_FORMATTER_TXT_FILE: str = \
    "%(asctime)s | %(levelname)-9s | %(name)-32s | %(filename)-26s : %(lineno)-5d | %(threadName)s | %(message)s"

DEFAULT_ROTATION_WHEN: str = 'midnight'
