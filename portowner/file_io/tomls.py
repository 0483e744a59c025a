try:
    # This is a library in python 3.11 and above.
    import tomllib
except ModuleNotFoundError:
    # This is library from pypi.
    # noinspection PyPackageRequirements
    import tomli as tomllib

from ..exceptions import ParseFailureError


def read_toml_file(file_path: str) -> dict:
    """
    Read the toml file and return its content as dictionary.

    :param file_path: String with full file path to file.
    :return: dict.
    :raises FileNotFoundError: if the file doesn't exist.
    :raises ParseFailureError: if the file isn't a valid toml.
    """

    with open(file_path, 'rb') as file_object:
        try:
            return tomllib.load(file_object)
        except tomllib.TOMLDecodeError as exception_object:
            raise ParseFailureError(f"Invalid toml file: {file_path}: {exception_object}")
