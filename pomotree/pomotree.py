import argparse
import importlib
import json
import logging
import sys

import torch

from .core.logger import Runnable
from .core.utils import (
    PARAMETER_TYPES,
    ConfigurationError,
    JSONParseError,
    TensorDecoder,
    get_class,
    package_contents,
    process_objects,
    remove_comments,
    update_parameters,
)


def create_parser():
    parser = argparse.ArgumentParser(
        prog='pomotree',
        description='Polymorphism-aware phylogenetic models using pytorch',
    )
    parser.add_argument(
        'file',
        type=argparse.FileType('r'),
        metavar='input-file-name',
        default=sys.stdin,
        help='JSON configuration file',
    )
    parser.add_argument(
        '-c', '--checkpoint', action='append', help='JSON checkpoint file'
    )
    parser.add_argument(
        '--dry',
        action='store_true',
        help='do not run anything, just parse',
    )
    parser.add_argument(
        '--dtype',
        required=False,
        choices=['float32', 'float64'],
        default='float64',
        help='``torch.Tensor`` type to floating point tensor type (default: float64)',
    )
    parser.add_argument(
        '-s',
        '--seed',
        type=int,
        required=False,
        default=None,
        help="""initialize seed""",
    )
    parser.add_argument(
        '-v',
        '--verbose',
        action='store_true',
        help='print debugging messages',
    )
    return parser


def read_checkpoints(checkpoint_files: list[str], data) -> dict:
    """Update the parameters of data and return the other saved states."""
    others = {}
    for checkpoint_file in checkpoint_files:
        with open(checkpoint_file) as file_pointer:
            checkpoint = json.load(file_pointer, cls=TensorDecoder)
        tensors = {}
        for entry in checkpoint:
            if entry['type'] in PARAMETER_TYPES:
                tensors[entry['id']] = entry
            else:
                others[entry['id']] = entry
        update_parameters(data, tensors)
    return others


def run(data, checkpoints=None, dry=False) -> dict:
    """Build the objects of a configuration and run the runnable ones.

    :param data: list of JSON objects
    :param checkpoints: checkpoint files
    :param bool dry: do not run anything
    :return: objects keyed by their ID
    """
    # import every module so that configurations can use registered class names
    for module in package_contents('pomotree'):
        importlib.import_module(module)

    remove_comments(data)
    others = read_checkpoints(checkpoints, data) if checkpoints else {}

    dic = {}
    for element in data:
        obj = process_objects(element, dic)
        if hasattr(obj, 'id') and obj.id in others and hasattr(obj, 'load_state_dict'):
            obj.load_state_dict(others[obj.id])

        if isinstance(obj, Runnable) and not dry:
            obj.run()
    return dic


def main():
    """Main function to run pomotree."""
    arg = create_parser().parse_args()

    logging.basicConfig(
        format='%(levelname)s: %(message)s',
        level=logging.DEBUG if arg.verbose else logging.INFO,
    )

    if arg.seed is not None:
        torch.manual_seed(arg.seed)
    print('SEED: {}'.format(torch.initial_seed()))

    dtype_class = get_class('torch.' + arg.dtype)
    torch.set_default_dtype(dtype_class)
    print('dtype: {}'.format('torch.' + arg.dtype))

    print()

    data = json.load(arg.file)

    try:
        run(data, arg.checkpoint, arg.dry)
    except (JSONParseError, ConfigurationError) as error:
        logging.error(error)
        sys.exit(1)


if __name__ == "__main__":
    main()
