import logging
import sys

from PyQt6.QtWidgets import QApplication

from .editor_window import EditorWindow
from .preferences import Preferences


def main():
    app = QApplication(sys.argv)
    prefs = Preferences()
    logging.basicConfig(level=prefs.log_level, format="[%(name)s] %(message)s")

    window = EditorWindow(prefs)
    window.show()

    if len(sys.argv) > 1:
        window.open_image_path(sys.argv[1])
    else:
        window.new_canvas()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
