"""Game Script Text Bridge — extract, translate and reinsert game script text.

Launch with: python main.py
"""

import logging
import sys
from PyQt6.QtWidgets import QApplication
from textbridge.widgets.main_window import MainWindow


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    app = QApplication(sys.argv)
    app.setApplicationName("Game Script Text Bridge")
    app.setStyle("Fusion")

    window = MainWindow()
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
