from __future__ import annotations

import os
from pathlib import Path

from PySide6.QtCore import QObject, QSettings, Qt, QThread, Signal
from PySide6.QtGui import QAction
from PySide6.QtWidgets import (
    QAbstractItemView,
    QApplication,
    QCheckBox,
    QComboBox,
    QDoubleSpinBox,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QMainWindow,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QSplitter,
    QSpinBox,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from .cli import setup_logging
from .compress import compress_file
from .errors import ConfigurationError
from .models import (
    DEFAULT_LOWER_BOUND,
    DEFAULT_UPPER_BOUND,
    MAX_QUALITY,
    MIN_QUALITY,
    SUPPORTED_SUFFIXES,
    CompressOptions,
    CompressResult,
    SearchConfig,
    ToleranceBand,
    iter_image_files,
)
from .report import format_engine_status, format_history, format_summary, result_row
from .tools import get_engine_status

COLUMNS = ["文件", "质量", "DSSIM", "状态", "轮数", "节省"]


class SearchWorker(QObject):
    file_done = Signal(int, object)
    done = Signal()

    def __init__(self, files: list[Path], options: CompressOptions) -> None:
        super().__init__()
        self.files = files
        self.options = options

    def run(self) -> None:
        try:
            for row, path in enumerate(self.files):
                self.file_done.emit(row, compress_file(path, self.options))
        finally:
            self.done.emit()


class QueueTable(QTableWidget):
    """Result table that also takes dropped files and folders into the queue."""

    paths_dropped = Signal(list)

    def __init__(self) -> None:
        super().__init__(0, len(COLUMNS))
        self.setHorizontalHeaderLabels(COLUMNS)
        self.horizontalHeader().setSectionResizeMode(0, QHeaderView.Stretch)
        self.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.setSelectionMode(QAbstractItemView.SingleSelection)
        self.setAcceptDrops(True)

    def dragEnterEvent(self, event) -> None:
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
        else:
            event.ignore()

    def dragMoveEvent(self, event) -> None:
        self.dragEnterEvent(event)

    def dropEvent(self, event) -> None:
        paths = [Path(url.toLocalFile()) for url in event.mimeData().urls() if url.toLocalFile()]
        if paths:
            self.paths_dropped.emit(paths)
            event.acceptProposedAction()

    def show_queue(self, files: list[Path]) -> None:
        self.setRowCount(len(files))
        for row, path in enumerate(files):
            self.set_cells(row, [path.name, "", "", "等待", "", ""])

    def set_cells(self, row: int, cells: list[str]) -> None:
        for column, text in enumerate(cells):
            item = QTableWidgetItem(text)
            if column:
                item.setTextAlignment(Qt.AlignCenter)
            self.setItem(row, column, item)


class MainWindow(QMainWindow):
    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("Jpegtune")
        self.resize(980, 680)
        self.settings = QSettings("Jpegtune", "Jpegtune")
        self.thread: QThread | None = None
        self.worker: SearchWorker | None = None
        self.queue: list[Path] = []
        self.roots: list[Path] = []
        self.results: dict[int, CompressResult] = {}

        self.table = QueueTable()
        self.history_view = QPlainTextEdit()
        self.output_line = QLineEdit()
        self.same_dir_check = QCheckBox("输出到源文件所在目录")
        self.encoder_combo = QComboBox()
        self.quality_spin = QSpinBox()
        self.step_spin = QSpinBox()
        self.lower_spin = QDoubleSpinBox()
        self.upper_spin = QDoubleSpinBox()
        self.iterations_spin = QSpinBox()
        self.clamp_check = QCheckBox(f"质量限制在 {MIN_QUALITY}..{MAX_QUALITY}")
        self.engine_label = QLabel()
        self.start_button = QPushButton("开始优化")
        self.progress_bar = QProgressBar()
        self.setup_ui()
        self.restore_settings()
        self.refresh_engines()

    def setup_ui(self) -> None:
        splitter = QSplitter(Qt.Vertical)
        splitter.addWidget(self.table)
        splitter.addWidget(self.history_view)
        splitter.setStretchFactor(0, 3)
        splitter.setStretchFactor(1, 1)
        self.history_view.setReadOnly(True)
        self.history_view.setPlaceholderText("选中一行查看每一轮的质量与 DSSIM")

        side = QVBoxLayout()
        side.addWidget(self.build_queue_group())
        side.addWidget(self.build_search_group())
        side.addWidget(self.build_output_group())
        side.addWidget(self.engine_label)
        side.addStretch(1)
        side.addWidget(self.start_button)
        side.addWidget(self.progress_bar)

        layout = QHBoxLayout()
        layout.addWidget(splitter, 1)
        layout.addLayout(side)
        central = QWidget()
        central.setLayout(layout)
        self.setCentralWidget(central)

        self.engine_label.setWordWrap(True)
        self.table.paths_dropped.connect(self.add_paths)
        self.table.itemSelectionChanged.connect(self.show_selected_history)
        self.start_button.clicked.connect(self.on_start)
        self.same_dir_check.toggled.connect(self.output_line.setDisabled)
        quit_action = QAction("退出", self)
        quit_action.triggered.connect(self.close)
        self.menuBar().addAction(quit_action)

    def build_queue_group(self) -> QGroupBox:
        group = QGroupBox("待处理")
        layout = QHBoxLayout()
        for text, slot in (("添加文件", self.pick_files), ("添加文件夹", self.pick_folder), ("清空", self.clear_queue)):
            button = QPushButton(text)
            button.clicked.connect(slot)
            layout.addWidget(button)
        group.setLayout(layout)
        return group

    def build_search_group(self) -> QGroupBox:
        group = QGroupBox("搜索参数")
        form = QFormLayout()
        self.quality_spin.setRange(MIN_QUALITY, MAX_QUALITY)
        self.step_spin.setRange(1, MAX_QUALITY)
        self.iterations_spin.setRange(1, 30)
        for spin in (self.lower_spin, self.upper_spin):
            spin.setDecimals(6)
            spin.setRange(0.0, 1.0)
            spin.setSingleStep(0.0005)
        band = QHBoxLayout()
        band.addWidget(self.lower_spin)
        band.addWidget(QLabel("≤ DSSIM <"))
        band.addWidget(self.upper_spin)
        form.addRow("编码器", self.encoder_combo)
        form.addRow("初始质量", self.quality_spin)
        form.addRow("初始步长", self.step_spin)
        form.addRow("目标区间", band)
        form.addRow("最多轮数", self.iterations_spin)
        form.addRow("", self.clamp_check)
        group.setLayout(form)
        return group

    def build_output_group(self) -> QGroupBox:
        group = QGroupBox("输出")
        layout = QVBoxLayout()
        row = QHBoxLayout()
        browse = QPushButton("浏览")
        browse.clicked.connect(self.pick_output_dir)
        row.addWidget(self.output_line)
        row.addWidget(browse)
        layout.addLayout(row)
        layout.addWidget(self.same_dir_check)
        group.setLayout(layout)
        return group

    def refresh_engines(self) -> None:
        status = get_engine_status()
        self.engine_label.setText(format_engine_status(status))
        current = self.encoder_combo.currentData() or self.settings.value("encoder", "mozjpeg")
        self.encoder_combo.clear()
        for name in ("mozjpeg", "pillow"):
            self.encoder_combo.addItem(name, name)
            if not status.get(name):
                item = self.encoder_combo.model().item(self.encoder_combo.count() - 1)
                item.setEnabled(False)
        index = self.encoder_combo.findData(current)
        if index < 0 or not status.get(current):
            index = self.encoder_combo.findData("pillow")
        self.encoder_combo.setCurrentIndex(index)

    def pick_files(self) -> None:
        files, _ = QFileDialog.getOpenFileNames(self, "添加图片", "", "Images (*.jpg *.jpeg *.png)")
        self.add_paths([Path(file) for file in files])

    def pick_folder(self) -> None:
        folder = QFileDialog.getExistingDirectory(self, "添加文件夹")
        if folder:
            self.add_paths([Path(folder)])

    def pick_output_dir(self) -> None:
        folder = QFileDialog.getExistingDirectory(self, "选择输出目录", self.output_line.text())
        if folder:
            self.output_line.setText(folder)

    def add_paths(self, paths: list[Path]) -> None:
        if self.thread is not None:
            return
        for path in paths:
            if path.is_dir():
                self.queue.extend(iter_image_files(path))
                self.roots.append(path)
            elif path.suffix.lower() in SUPPORTED_SUFFIXES:
                self.queue.append(path)
                self.roots.append(path.parent)
        self.queue = list(dict.fromkeys(self.queue))
        self.results.clear()
        self.table.show_queue(self.queue)

    def clear_queue(self) -> None:
        if self.thread is None:
            self.queue = []
            self.roots = []
            self.results.clear()
            self.table.show_queue(self.queue)
            self.history_view.clear()

    def search_config(self) -> SearchConfig:
        return SearchConfig(
            initial_quality=self.quality_spin.value(),
            initial_step=self.step_spin.value(),
            band=ToleranceBand(self.lower_spin.value(), self.upper_spin.value()),
            max_iterations=self.iterations_spin.value(),
            encoder=self.encoder_combo.currentData() or "pillow",
            clamp_quality=self.clamp_check.isChecked(),
        )

    def compress_options(self) -> CompressOptions:
        search = self.search_config()
        # folders added whole stay the mirror root so their subfolders survive
        root = Path(os.path.commonpath([str(path) for path in self.roots]))
        if self.same_dir_check.isChecked():
            return CompressOptions(root, root, "same_dir", search)
        output = self.output_line.text().strip()
        if not output:
            raise ConfigurationError("未设置输出目录")
        return CompressOptions(root, Path(output), "mirror", search)

    def on_start(self) -> None:
        if self.thread is not None or not self.queue:
            return
        try:
            options = self.compress_options()
        except ConfigurationError as exc:
            self.statusBar().showMessage(f"配置错误：{exc}")
            return
        self.save_settings()
        self.results.clear()
        self.table.show_queue(self.queue)
        self.history_view.clear()
        self.progress_bar.setRange(0, len(self.queue))
        self.progress_bar.setValue(0)
        self.start_button.setEnabled(False)

        self.thread = QThread()
        self.worker = SearchWorker(list(self.queue), options)
        self.worker.moveToThread(self.thread)
        self.thread.started.connect(self.worker.run)
        self.worker.file_done.connect(self.on_file_done)
        self.worker.done.connect(self.on_done)
        self.worker.done.connect(self.thread.quit)
        self.thread.finished.connect(self.on_thread_finished)
        self.thread.start()

    def on_file_done(self, row: int, result: CompressResult) -> None:
        self.results[row] = result
        self.table.set_cells(row, result_row(result))
        self.progress_bar.setValue(len(self.results))
        if self.table.currentRow() == row:
            self.show_selected_history()

    def on_done(self) -> None:
        ordered = [self.results[row] for row in sorted(self.results)]
        self.statusBar().showMessage(format_summary(ordered))

    def on_thread_finished(self) -> None:
        self.start_button.setEnabled(True)
        self.thread = None
        self.worker = None

    def show_selected_history(self) -> None:
        result = self.results.get(self.table.currentRow())
        if result is None:
            self.history_view.clear()
        elif result.success:
            self.history_view.setPlainText(f"{result.output}\n{format_history(result.history)}")
        else:
            self.history_view.setPlainText(result.message)

    def restore_settings(self) -> None:
        value = self.settings.value
        self.output_line.setText(value("output_dir", ""))
        self.same_dir_check.setChecked(value("same_dir", False, type=bool))
        self.quality_spin.setValue(value("initial_quality", 80, type=int))
        self.step_spin.setValue(value("initial_step", 20, type=int))
        self.lower_spin.setValue(value("lower", DEFAULT_LOWER_BOUND, type=float))
        self.upper_spin.setValue(value("upper", DEFAULT_UPPER_BOUND, type=float))
        self.iterations_spin.setValue(value("max_iterations", 7, type=int))
        self.clamp_check.setChecked(value("clamp_quality", True, type=bool))

    def save_settings(self) -> None:
        config = self.search_config()
        for key, value in (
            ("output_dir", self.output_line.text().strip()),
            ("same_dir", self.same_dir_check.isChecked()),
            ("encoder", config.encoder),
            ("initial_quality", config.initial_quality),
            ("initial_step", config.initial_step),
            ("lower", config.band.lower),
            ("upper", config.band.upper),
            ("max_iterations", config.max_iterations),
            ("clamp_quality", config.clamp_quality),
        ):
            self.settings.setValue(key, value)


def main() -> None:
    setup_logging(verbose=False)
    app = QApplication([])
    window = MainWindow()
    window.show()
    app.exec()
