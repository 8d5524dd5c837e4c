from .material_request import *  # noqa
from .customer_part import *  # noqa
