import sys

try:
    from quickcopy.app import run
except ImportError as e:
    print("Error: Could not import the QuickCopy application.")
    print("Please install the project first, e.g. `pip install -e .[desktop]`.")
    print(f"Details: {e}")
    sys.exit(1)


def main():
    """
    The main entry point for the QuickCopy application.

    Loads the configuration, sets up logging, creates the tray application
    and runs the Qt event loop until the user quits from the tray menu.
    """
    sys.exit(run())


if __name__ == '__main__':
    main()
