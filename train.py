import logging
from dataclasses import dataclass

import numpy as np
import torch
from torch import nn, optim
from torch.utils.data import DataLoader, TensorDataset
from tqdm import tqdm
from sklearn.metrics import accuracy_score

from errors import InsufficientDataError
from inference import TrainedClassifier
from model import ClassifierHead

logger = logging.getLogger(__name__)

# Hyperparameters you can tune
MIN_TOTAL = 10
HIDDEN_UNITS = 128
DROPOUT = 0.25
LR = 5e-4
EPOCHS = 25
BATCH_SIZE = 32
N_CLASSES = 2


@dataclass(frozen=True)
class EpochLog:
    epoch: int  # 1-based
    loss: float
    accuracy: float


def make_dataloader(samples_a, samples_b, batch_size=BATCH_SIZE, generator=None):
    xs = np.stack([np.asarray(v, dtype=np.float32) for v in list(samples_a) + list(samples_b)])
    labels = torch.tensor([0] * len(samples_a) + [1] * len(samples_b), dtype=torch.long)
    # one-hot: A -> [1, 0], B -> [0, 1]
    ys = nn.functional.one_hot(labels, N_CLASSES).float()
    ds = TensorDataset(torch.from_numpy(xs), ys)
    return DataLoader(ds, batch_size=batch_size, shuffle=True, num_workers=0, generator=generator)


def train_classifier(samples_a, samples_b, *, on_epoch=None, epochs=EPOCHS, lr=LR,
                     batch_size=BATCH_SIZE, hidden_units=HIDDEN_UNITS, dropout=DROPOUT,
                     min_total=MIN_TOTAL, device='cpu', seed=None,
                     class_names=('Class A', 'Class B'), progress_bar=False):
    """
    Fit a fresh classifier head on the two buckets of embedding vectors.

    Runs exactly `epochs` passes with no early stopping or validation split.
    on_epoch(EpochLog) is called after every pass, in order; it is the only
    side channel while training runs. An exception part-way through leaves
    nothing behind.
    """
    total = len(samples_a) + len(samples_b)
    if total < min_total:
        raise InsufficientDataError(min_total, total)

    generator = None
    if seed is not None:
        torch.manual_seed(seed)
        generator = torch.Generator().manual_seed(seed)

    loader = make_dataloader(samples_a, samples_b, batch_size=batch_size, generator=generator)
    in_features = loader.dataset.tensors[0].shape[1]
    model = ClassifierHead(in_features, hidden_units=hidden_units, dropout=dropout,
                           n_classes=N_CLASSES).to(device)
    criterion = nn.CrossEntropyLoss()
    optimizer = optim.Adam(model.parameters(), lr=lr)

    logger.info('Training on %d samples (%d A, %d B), %d epochs',
                total, len(samples_a), len(samples_b), epochs)
    history = []
    for epoch in tqdm(range(epochs), desc='Training', disable=not progress_bar):
        model.train()
        running_loss = 0.0
        ys, yps = [], []
        for xb, yb in loader:
            xb = xb.to(device)
            yb = yb.to(device)
            logits = model(xb)
            # probability targets: categorical cross-entropy against one-hot rows
            loss = criterion(logits, yb)
            optimizer.zero_grad()
            loss.backward()
            optimizer.step()
            running_loss += loss.item() * xb.shape[0]
            yps.extend(logits.argmax(dim=1).cpu().numpy().tolist())
            ys.extend(yb.argmax(dim=1).cpu().numpy().tolist())

        log = EpochLog(epoch=epoch + 1, loss=running_loss / total, accuracy=float(accuracy_score(ys, yps)))
        history.append(log)
        logger.debug('Epoch %d loss=%.4f acc=%.4f', log.epoch, log.loss, log.accuracy)
        if on_epoch is not None:
            on_epoch(log)

    if history:
        logger.info('Training finished. Final loss %.4f, acc %.4f', history[-1].loss, history[-1].accuracy)
    return TrainedClassifier(model, device=device, class_names=class_names, history=history,
                             trained_counts=(len(samples_a), len(samples_b)))


class ClassifierTrainer:
    """train_classifier with its hyperparameters bound from a Config."""

    def __init__(self, config, progress_bar=False):
        self.config = config
        self.progress_bar = progress_bar

    def fit(self, samples_a, samples_b, on_epoch=None):
        c = self.config
        return train_classifier(
            samples_a, samples_b,
            on_epoch=on_epoch,
            epochs=c.epochs,
            lr=c.learning_rate,
            batch_size=c.batch_size,
            hidden_units=c.hidden_units,
            dropout=c.dropout,
            min_total=c.min_total_samples,
            device=c.device,
            seed=c.seed,
            class_names=c.class_names(),
            progress_bar=self.progress_bar,
        )
