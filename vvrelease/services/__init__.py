"""Services of a release run.

Each module owns one stage (toolchain, build unit, assembly, signing,
archiving, publication); ``pipeline`` schedules them per target.
"""
