MODEL_CONFIG = {
    'random_state': 42,
    'test_size': 0.2,
    'validation_size': 0.2,
    'sample_size': 10000,
    'cv_folds': 0,
    'n_jobs': None,
    'permutation_repeats': 0,
    'lookup_positions': [0, 1, 10]
}

DATA_PATHS = {
    'raw_data': 'data/raw/creditcard.csv',
    'subset_data': 'data/processed/creditcard_subset.csv',
    'report_dir': 'reports'
}

FEATURES = {
    'rename': {
        'Time': 'time',
        'Amount': 'amount',
        'Class': 'label',
        **{f'V{i}': f'v{i}' for i in range(1, 29)}
    },
    'numeric_features': ['time', 'amount'] + [f'v{i}' for i in range(1, 29)],
    'label': 'label',
    'target': 'target',
    'fraud_label': 'fraud',
    'genuine_label': 'genuine',
    # source files encode Class as 1 = fraud, 0 = genuine
    'source_label_map': {1: 'fraud', 0: 'genuine', '1': 'fraud', '0': 'genuine'}
}

# fraud is the positive class everywhere: confusion naming, ROC and AUC
TARGET_ENCODING = {
    FEATURES['fraud_label']: 0,
    FEATURES['genuine_label']: 1
}
POSITIVE_CLASS = TARGET_ENCODING[FEATURES['fraud_label']]

SCHEMA = {
    'Time': 'float64',
    'Amount': 'float64',
    **{f'V{i}': 'float64' for i in range(1, 29)},
    'Class': 'object'
}
