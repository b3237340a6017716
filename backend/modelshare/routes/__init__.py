from importlib import import_module

modules = [
    'alerts',
    'assets',
    'requests',
    'status',
    'users',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
