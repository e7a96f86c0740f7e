# tavern_exporter/__init__.py
__version__ = "2.2.6"
