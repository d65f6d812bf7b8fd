"""macOS integrations (AppKit, Quartz, Accessibility).

Import these modules only on macOS; nothing else in the package imports them.
"""
