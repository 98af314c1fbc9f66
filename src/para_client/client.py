from .tokens import _TokenOperations


class ParaClient(_TokenOperations):
    pass
