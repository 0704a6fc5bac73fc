"""
Default parameters shared by training and live classification.

Values follow the MNIST conventions the models are trained on: 28x28 digits,
binarized at intensity 90, padded by 20% of their size on each side.
"""

# ---------- Dataset ----------
BINARIZE_THRESHOLD = 90          # pixel >= threshold -> 255, else 0
FOREGROUND = 255
BACKGROUND = 0

IMAGE_MAGIC = 2051               # MNIST idx3 header
LABEL_MAGIC = 2049               # MNIST idx1 header
IMAGE_HEADER_BYTES = 16
LABEL_HEADER_BYTES = 8

# ---------- HOG geometry (width, height) ----------
HOG_WIN_SIZE = (28, 28)
HOG_BLOCK_SIZE = (4, 4)
HOG_BLOCK_STRIDE = (2, 2)
HOG_CELL_SIZE = (4, 4)
HOG_NBINS = 9

# ---------- Frame segmentation ----------
DEFAULTS = {
    "blur_kernel": 5,            # box blur size, odd
    "threshold": 110,            # inverse binary threshold, dark ink -> 255
    "roi_fraction": 0.75,        # centered ROI, fraction of width/height
    "close_kernel": 3,           # elliptical closing element size, odd
    "pad_ratio": 0.2,            # MNIST pads 4px around a 20px digit
}

# ---------- Models ----------
TASK_DIGIT = "digit"
TASK_DETECTOR = "detector"

DIGIT_PARAMS = {"kernel": "poly", "C": 0.1, "gamma": 0.1, "degree": 2}
DETECTOR_PARAMS = {"kernel": "linear", "C": 0.1}

# Grid used by TrainableClassifier.train_auto: (min, max, log step)
C_GRID = (10.0, 20.0, 1.1)
GAMMA_GRID = (0.5, 2.0, 1.1)
AUTO_FOLDS = 10

CLASSIFIER_MODEL_FILE = "mnistSvm.joblib"
DETECTOR_MODEL_FILE = "svmDigitDetector.joblib"

# ---------- Data layout used by the training command ----------
MNIST_DIR = "data/MNIST"
TRAIN_IMAGES = "train-images.idx3-ubyte"
TRAIN_LABELS = "train-labels.idx1-ubyte"
TEST_IMAGES = "t10k-images.idx3-ubyte"
TEST_LABELS = "t10k-labels.idx1-ubyte"
NOT_DIGITS_DIR = "data/NotDigits"
