"""Small lookups shared by the test modules."""


def core_at(cable, core_index):
    return next(core for core in cable.cores if core.core_index == core_index)
