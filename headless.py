# headless.py: capture, train and predict from a terminal, no window needed
import argparse
import logging
import sys
import threading
import time

from config import add_arguments, apply_args, configure_logging, get_config, positive_float
from errors import SnapClassError
from samples import Label
from session import Session
from train import ClassifierTrainer

logger = logging.getLogger(__name__)


def run_headless(session: Session, samples_per_class=5, predict_seconds=3.0, prompt=input, out=print):
    """
    Walk one session through capture -> train -> live prediction.

    The user is prompted once per class, then `samples_per_class` frames are
    grabbed back to back. Training shows whatever progress the session's
    trainer reports (a tqdm bar when built with progress_bar=True). Live
    prediction runs for `predict_seconds` and every result is printed.
    Returns the predictions seen.
    """
    session.initialize()
    out('Ready! Capture images now.')

    for label in (Label.A, Label.B):
        name = session.class_name(label)
        prompt(f'Show {name} to the camera and press Enter to capture {samples_per_class} images...')
        for _ in range(samples_per_class):
            cap = session.capture_sample(label)
            out(f'{name} samples: {cap.count}')

    classifier = session.train()
    last = classifier.history[-1] if classifier.history else None
    if last is not None:
        out(f'Epoch {last.epoch} — Loss: {last.loss:.3f} Acc: {last.accuracy:.3f}')
    out('Training Done! Start Prediction.')

    predictions = []
    lock = threading.Lock()

    def report(frame, prediction):
        pct_a, pct_b = prediction.percentages()
        with lock:
            predictions.append(prediction)
        out(f'{pct_a:>8} {pct_b:>8}  -> {classifier.label_for(prediction)}')

    out('Predicting Live...')
    session.start_prediction(on_result=report)
    try:
        time.sleep(predict_seconds)
    finally:
        session.stop_prediction()
    out('Stopped.')
    with lock:
        return list(predictions)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Teach a two-class image classifier from your webcam, in the terminal',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_arguments(parser)
    parser.add_argument('--samples', type=int, default=5, help='Images to capture per class')
    parser.add_argument('--seconds', type=positive_float, default=3.0,
                        help='How long to run live prediction')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.log_level)
    config = apply_args(get_config(), args)

    session = Session(config=config, trainer=ClassifierTrainer(config, progress_bar=True))
    try:
        with session:
            run_headless(session, samples_per_class=args.samples, predict_seconds=args.seconds)
    except SnapClassError as e:
        logger.error('%s', e)
        return 1
    except KeyboardInterrupt:
        logger.info('Interrupted.')
        return 130
    return 0


if __name__ == '__main__':
    sys.exit(main())
