# gui_app.py
import argparse
import io
import logging
import sys

from PyQt5.QtWidgets import (
    QApplication, QWidget, QLabel, QPushButton, QHBoxLayout, QVBoxLayout,
    QGridLayout, QScrollArea, QProgressBar, QMessageBox
)
from PyQt5.QtGui import QPixmap, QImage
from PyQt5.QtCore import Qt, QTimer, pyqtSignal
from PIL import Image

from config import add_arguments, apply_args, configure_logging, get_config
from errors import SnapClassError
from inference import format_percent
from samples import Label
from session import Session

logger = logging.getLogger(__name__)

THUMB_SIZE = 64
LAST_THUMB_SIZE = 112
PREVIEW_SIZE = 224
VIEW_INTERVAL_MS = 66
BAR_SCALE = 10000  # QProgressBar is integer-only; keep two decimals of a percent


def pil2pixmap(img: Image.Image):
    """
    Convert a PIL Image to a QPixmap.

    QImage is built over the raw RGB buffer and copy()'d so the pixels live
    in Qt-owned memory rather than a Python bytes object that may be freed.
    Falls back to a PNG round-trip if that fails.
    """
    try:
        img = img.convert('RGB')
        w, h = img.size
        data = img.tobytes('raw', 'RGB')
        qimg = QImage(data, w, h, 3 * w, QImage.Format_RGB888)
        return QPixmap.fromImage(qimg.copy())
    except Exception as e:
        logger.warning('pil2pixmap direct conversion failed (%s), using PNG fallback', e)
        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        pixmap = QPixmap()
        pixmap.loadFromData(buffer.getvalue(), 'PNG')
        return pixmap


class ClassPanel(QWidget):
    """Capture button, last-capture thumbnail and scrolling gallery for one class."""

    def __init__(self, title):
        super().__init__()
        self.capture_btn = QPushButton(f'Capture {title}')
        self.count_label = QLabel('0 samples')
        self.last_thumb = QLabel()
        self.last_thumb.setFixedSize(LAST_THUMB_SIZE, LAST_THUMB_SIZE)
        self.last_thumb.setAlignment(Qt.AlignCenter)
        self.last_thumb.setStyleSheet('border: 1px solid #888;')

        self.gallery = QWidget()
        self.gallery_layout = QHBoxLayout(self.gallery)
        self.gallery_layout.setAlignment(Qt.AlignLeft)
        self.gallery_layout.setContentsMargins(2, 2, 2, 2)
        self.scroll = QScrollArea()
        self.scroll.setWidget(self.gallery)
        self.scroll.setWidgetResizable(True)
        self.scroll.setFixedHeight(THUMB_SIZE + 28)

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel(f'<b>{title}</b>'))
        row = QHBoxLayout()
        row.addWidget(self.last_thumb)
        col = QVBoxLayout()
        col.addWidget(self.capture_btn)
        col.addWidget(self.count_label)
        col.addStretch()
        row.addLayout(col)
        layout.addLayout(row)
        layout.addWidget(self.scroll)

    def add_thumbnail(self, frame: Image.Image, count):
        pix = pil2pixmap(frame)
        thumb = QLabel()
        thumb.setPixmap(pix.scaled(THUMB_SIZE, THUMB_SIZE, Qt.KeepAspectRatio, Qt.SmoothTransformation))
        self.gallery_layout.addWidget(thumb)
        self.last_thumb.setPixmap(pix.scaled(LAST_THUMB_SIZE, LAST_THUMB_SIZE, Qt.KeepAspectRatio,
                                             Qt.SmoothTransformation))
        self.count_label.setText(f'{count} samples')
        # keep the newest thumbnail in view
        bar = self.scroll.horizontalScrollBar()
        QTimer.singleShot(0, lambda: bar.setValue(bar.maximum()))


class ProbabilityBar(QWidget):
    def __init__(self, title):
        super().__init__()
        self.bar = QProgressBar()
        self.bar.setRange(0, BAR_SCALE)
        self.bar.setTextVisible(False)
        self.pct = QLabel(format_percent(0.0))
        self.pct.setMinimumWidth(60)
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        name = QLabel(title)
        name.setMinimumWidth(70)
        layout.addWidget(name)
        layout.addWidget(self.bar, 1)
        layout.addWidget(self.pct)

    def set_probability(self, p):
        self.bar.setValue(int(round(p * BAR_SCALE)))
        self.pct.setText(format_percent(p))


class TrainerWindow(QWidget):
    # emitted from the live-prediction worker; Qt queues them onto the UI thread
    prediction_ready = pyqtSignal(object, object)
    prediction_failed = pyqtSignal(str)

    def __init__(self, session: Session):
        super().__init__()
        self.session = session
        name_a, name_b = session.config.class_names()
        self.setWindowTitle('SnapClass - two-class webcam trainer')

        self.video_label = QLabel('Starting camera...')
        self.video_label.setAlignment(Qt.AlignCenter)
        self.video_label.setMinimumSize(400, 300)
        self.preview_label = QLabel()
        self.preview_label.setFixedSize(PREVIEW_SIZE, PREVIEW_SIZE)
        self.preview_label.setAlignment(Qt.AlignCenter)
        self.preview_label.setStyleSheet('border: 1px solid #888;')

        self.panel_a = ClassPanel(name_a)
        self.panel_b = ClassPanel(name_b)
        self.panel_a.capture_btn.clicked.connect(lambda: self.capture(Label.A))
        self.panel_b.capture_btn.clicked.connect(lambda: self.capture(Label.B))

        self.train_btn = QPushButton('Train')
        self.train_btn.clicked.connect(self.train)
        self.start_btn = QPushButton('Start Prediction')
        self.start_btn.clicked.connect(self.start_prediction)
        self.stop_btn = QPushButton('Stop Prediction')
        self.stop_btn.clicked.connect(self.stop_prediction)

        self.bar_a = ProbabilityBar(name_a)
        self.bar_b = ProbabilityBar(name_b)
        self.status_label = QLabel('Initializing...')

        views = QHBoxLayout()
        views.addWidget(self.video_label, 1)
        preview_col = QVBoxLayout()
        preview_col.addWidget(QLabel('Prediction input'))
        preview_col.addWidget(self.preview_label)
        preview_col.addStretch()
        views.addLayout(preview_col)

        panels = QGridLayout()
        panels.addWidget(self.panel_a, 0, 0)
        panels.addWidget(self.panel_b, 0, 1)

        controls = QHBoxLayout()
        controls.addWidget(self.train_btn)
        controls.addWidget(self.start_btn)
        controls.addWidget(self.stop_btn)

        layout = QVBoxLayout()
        layout.addLayout(views)
        layout.addLayout(panels)
        layout.addLayout(controls)
        layout.addWidget(self.bar_a)
        layout.addWidget(self.bar_b)
        layout.addWidget(self.status_label)
        self.setLayout(layout)

        self.prediction_ready.connect(self.show_prediction)
        self.prediction_failed.connect(self.show_prediction_error)

        self.view_timer = QTimer(self)
        self.view_timer.timeout.connect(self.refresh_view)

        self.busy = False
        self.update_controls()

    # -- helpers ------------------------------------------------------------

    def set_status(self, text):
        self.status_label.setText(text)
        # make sure the text is painted before the next blocking step
        QApplication.processEvents()

    def update_controls(self):
        ready = self.session.ready and not self.busy
        predicting = self.session.predicting
        self.panel_a.capture_btn.setEnabled(ready)
        self.panel_b.capture_btn.setEnabled(ready)
        self.train_btn.setEnabled(ready)
        self.start_btn.setEnabled(ready and self.session.classifier is not None and not predicting)
        self.stop_btn.setEnabled(predicting)

    # -- init ---------------------------------------------------------------

    def initialize(self):
        self.busy = True
        self.update_controls()
        try:
            self.set_status('Opening camera...')
            self.session.open_camera()
            self.view_timer.start(VIEW_INTERVAL_MS)
            self.set_status('Loading MobileNet...')
            self.session.load_extractor()
            self.set_status('MobileNet Loaded ✓')
        except Exception as e:
            if isinstance(e, SnapClassError):
                logger.error('Initialization failed: %s', e)
            else:
                logger.exception('Initialization failed')
            self.view_timer.stop()
            self.session.camera.close()
            self.set_status(f'Initialization failed: {e}')
            return
        finally:
            self.busy = False
            self.update_controls()
        self.set_status('Ready! Capture images now.')

    def refresh_view(self):
        try:
            frame = self.session.camera.read()
        except SnapClassError as e:
            logger.debug('View refresh skipped: %s', e)
            return
        pix = pil2pixmap(frame)
        self.video_label.setPixmap(pix.scaled(self.video_label.size(), Qt.KeepAspectRatio,
                                              Qt.FastTransformation))

    # -- actions ------------------------------------------------------------

    def capture(self, label: Label):
        try:
            cap = self.session.capture_sample(label)
        except SnapClassError as e:
            self.set_status(f'Capture failed: {e}')
            return
        except Exception as e:
            logger.exception('Capture failed')
            self.set_status(f'Capture failed: {e}')
            return
        panel = self.panel_a if label is Label.A else self.panel_b
        panel.add_thumbnail(cap.frame, cap.count)
        status = f'{self.session.class_name(label)} samples: {cap.count}'
        if self.session.is_stale:
            status += ' (retrain to include new samples)'
        self.set_status(status)

    def train(self):
        self.busy = True
        self.update_controls()
        self.set_status('Preparing training data...')

        def on_epoch(log):
            self.set_status(f'Epoch {log.epoch} — Loss: {log.loss:.3f} Acc: {log.accuracy:.3f}')

        try:
            self.set_status('Training...')
            self.session.train(on_epoch=on_epoch)
        except SnapClassError as e:
            QMessageBox.warning(self, 'Cannot train', str(e))
            self.set_status(str(e))
            return
        except Exception as e:
            logger.exception('Training failed')
            QMessageBox.warning(self, 'Training failed', str(e))
            self.set_status(f'Training failed: {e}')
            return
        finally:
            self.busy = False
            self.update_controls()
        self.set_status('Training Done! Start Prediction.')

    def start_prediction(self):
        try:
            started = self.session.start_prediction(
                on_result=lambda frame, pred: self.prediction_ready.emit(frame, pred),
                on_error=lambda e: self.prediction_failed.emit(str(e)),
            )
        except (SnapClassError, ValueError) as e:
            QMessageBox.warning(self, 'Cannot start prediction', str(e))
            return
        if started:
            self.set_status('Predicting Live...')
        self.update_controls()

    def stop_prediction(self):
        self.session.stop_prediction()
        self.update_controls()
        self.set_status('Stopped.')

    def show_prediction(self, frame, prediction):
        self.preview_label.setPixmap(pil2pixmap(frame).scaled(
            PREVIEW_SIZE, PREVIEW_SIZE, Qt.KeepAspectRatio, Qt.SmoothTransformation))
        self.bar_a.set_probability(prediction.prob_a)
        self.bar_b.set_probability(prediction.prob_b)
        classifier = self.session.classifier
        if classifier is not None and self.session.predicting:
            self.status_label.setText(f'Predicting Live... ({classifier.label_for(prediction)})')

    def show_prediction_error(self, message):
        self.status_label.setText(f'Prediction error: {message}')

    def closeEvent(self, event):
        self.view_timer.stop()
        self.session.close()
        super().closeEvent(event)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Teach a two-class image classifier from your webcam',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_arguments(parser)
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.log_level)
    config = apply_args(get_config(), args)

    app = QApplication(sys.argv[:1])
    app.setStyle('Fusion')

    w = TrainerWindow(Session(config=config))
    w.resize(900, 760)
    w.show()
    QTimer.singleShot(0, w.initialize)

    return app.exec_()


if __name__ == '__main__':
    sys.exit(main())
