import torch.nn as nn
import torchvision.models as models

# version -> (builder, ImageNet weights)
BACKBONES = {
    'v2': (models.mobilenet_v2, models.MobileNet_V2_Weights.IMAGENET1K_V1),
    'v3_large': (models.mobilenet_v3_large, models.MobileNet_V3_Large_Weights.IMAGENET1K_V1),
    'v3_small': (models.mobilenet_v3_small, models.MobileNet_V3_Small_Weights.IMAGENET1K_V1),
}


class EmbeddingBackbone(nn.Module):
    """MobileNet convolutional trunk followed by global average pooling."""

    def __init__(self, version='v2', alpha=1.0, pretrained=True):
        super().__init__()
        if version not in BACKBONES:
            raise ValueError(f'Unknown MobileNet version {version!r}, expected one of {sorted(BACKBONES)}')
        if pretrained and alpha != 1.0:
            raise ValueError(f'No pretrained weights for width multiplier {alpha}')
        builder, weights = BACKBONES[version]
        kwargs = {'width_mult': alpha} if alpha != 1.0 else {}
        net = builder(weights=weights if pretrained else None, **kwargs)
        self.features = net.features
        self.pool = nn.AdaptiveAvgPool2d(1)
        # width of the vector the dropped ImageNet classifier consumed
        self.out_features = next(m for m in net.classifier if isinstance(m, nn.Linear)).in_features

    def forward(self, x):
        return self.pool(self.features(x)).flatten(1)


class ClassifierHead(nn.Module):
    def __init__(self, in_features, hidden_units=128, dropout=0.25, n_classes=2):
        super().__init__()
        self.in_features = in_features
        self.layers = nn.Sequential(
            nn.Linear(in_features, hidden_units),
            nn.ReLU(),
            nn.Dropout(dropout),
            nn.Linear(hidden_units, n_classes),
        )

    def forward(self, x):
        # raw logits; softmax is applied by the caller
        return self.layers(x)


def freeze(module):
    for p in module.parameters():
        p.requires_grad_(False)
    module.eval()
    return module
