"""Source format readers.

Import concrete readers from their modules; ``ReaderRegistry.from_config``
builds the default ordered set.
"""
