import os

# Let the Qt smoke tests run headless.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
