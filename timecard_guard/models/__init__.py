"""
Unsupervised outlier model
==========================

- TimecardIsolationForest: scikit-learn Isolation Forest behind a fixed feature contract
- generate_normal_training_data: the designed "normal work pattern" prior

No labelled fraud examples exist; the training prior defines normal.
"""
