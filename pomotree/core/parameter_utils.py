from __future__ import annotations

import json
import os
from typing import Any

from pomotree.core.parameter_encoder import ParameterEncoder


def save_state(file_name: str, entries: list[Any], safely=True) -> None:
    r"""Save parameters and model states to a json file.

    With ``safely`` an existing file is only replaced once the new content has
    been written completely.

    :param str file_name: output file path
    :param entries: list of parameters or dictionaries
    :param bool safely: write to a temporary file first if True
    """
    if not safely or not os.path.lexists(file_name):
        with open(file_name, 'w') as fp:
            json.dump(entries, fp, cls=ParameterEncoder, indent=2)
    else:
        with open(file_name + '.new', 'w') as fp:
            json.dump(entries, fp, cls=ParameterEncoder, indent=2)
        os.rename(file_name, file_name + '.old')
        os.rename(file_name + '.new', file_name)
        os.remove(file_name + '.old')
