import json

import torch

from pomotree.core.parameter import Parameter
from pomotree.core.utils import TensorEncoder


class ParameterEncoder(json.JSONEncoder):
    """JSON encoder for parameters and tensors.

    Parameters are written in the format read by
    :meth:`~pomotree.core.parameter.Parameter.from_json`.
    """

    def default(self, obj):
        if isinstance(obj, torch.Tensor):
            return TensorEncoder.default(self, obj)
        elif isinstance(obj, Parameter):
            return {
                'id': obj.id,
                'type': 'pomotree.Parameter',
                'tensor': obj.tensor.tolist(),
                'dtype': str(obj.tensor.dtype),
            }
        return json.JSONEncoder.default(self, obj)
