import argparse
import logging
import sys
from pathlib import Path

from fraud_report.app.report import (
    MODEL_LABELS,
    ReportWriter,
    describe_evaluation,
    describe_lookup,
    plot_confusion,
    plot_roc_curve,
)
from fraud_report.config import DATA_PATHS, FEATURES, MODEL_CONFIG
from fraud_report.data.preprocessing import (
    Transaction,
    build_partitions,
    load_transactions,
    sample_transactions,
)
from fraud_report.exceptions import FraudReportError
from fraud_report.models.explainability import ModelExplainer
from fraud_report.models.train import FraudDetectionModel
from fraud_report.utils import configure_logging, save_data

logger = logging.getLogger(__name__)

EVALUATION_PARTITIONS = ('validation', 'test')


def _fraud_count(df):
    return int((df[FEATURES['label']] == FEATURES['fraud_label']).sum())


def prepare_subset(data_path, output_path, size, random_state):
    """Draw a uniform subset of the full dataset and write it in the source layout"""
    df = load_transactions(data_path)
    subset = sample_transactions(df, size, random_state)
    source_columns = {canonical: raw for raw, canonical in FEATURES['rename'].items()}
    save_data(subset.rename(columns=source_columns), output_path)
    logger.info(f"Subset of {len(subset)} transactions saved to {output_path}")
    return output_path


def run_report(data_path, subset_path=None, output_dir=DATA_PATHS['report_dir'], config=None):
    """
    Load, sample and split the transactions, train both models on the
    estimation partition and evaluate them on validation and test.

    Returns the path of the written report.
    """
    config = {**MODEL_CONFIG, **(config or {})}
    seed = config['random_state']

    if subset_path is not None:
        df = load_transactions(subset_path)
    else:
        df = load_transactions(data_path)
        if config['sample_size'] < len(df):
            df = sample_transactions(df, config['sample_size'], seed)

    partitions = build_partitions(df, config)
    model = FraudDetectionModel(config)
    writer = ReportWriter(output_dir)

    try:
        writer.add_heading('Credit card fraud: decision tree vs. random forest', level=1)
        writer.add_paragraph(
            f"The report is based on {len(df)} transactions, {_fraud_count(df)} of which are "
            f"fraudulent. Both models are fitted on the estimation partition "
            f"({len(partitions['estimation'])} records) and evaluated on the validation "
            f"({len(partitions['validation'])}) and test ({len(partitions['test'])}) "
            f"partitions, with fraud as the positive class. Random seed: {seed}."
        )

        for model_name in model.models:
            label = MODEL_LABELS[model_name]
            writer.add_heading(label.capitalize())
            predictor = model.train(partitions['estimation'], model_name)

            if config['cv_folds'] > 1:
                mean_auc, std_auc = model.cross_validate(partitions['estimation'], model_name)
                writer.add_paragraph(
                    f"{config['cv_folds']}-fold cross-validated ROC AUC on the estimation "
                    f"partition: {mean_auc:.4f} ± {std_auc:.4f}."
                )

            for partition in EVALUATION_PARTITIONS:
                frame = partitions[partition]
                scores, evaluation = model.evaluate_model(predictor, frame, partition)

                writer.add_heading(f"{label.capitalize()} on the {partition} partition", level=3)
                writer.add_paragraph(describe_evaluation(
                    model_name, partition, evaluation, _fraud_count(frame), len(frame)
                ))
                writer.add_table(evaluation.confusion.as_frame())
                writer.add_figure(
                    plot_confusion(evaluation.confusion, f"{label} ({partition})"),
                    f"confusion_{model_name}_{partition}.png",
                    f"Confusion matrix, {label}, {partition}"
                )
                writer.add_figure(
                    plot_roc_curve(evaluation, f"ROC curve, {label} ({partition})"),
                    f"roc_{model_name}_{partition}.png",
                    f"ROC curve, {label}, {partition}"
                )

                if partition == 'test':
                    for position in config['lookup_positions']:
                        probabilities = scores.probability_at(position)
                        transaction = Transaction.from_row(frame.iloc[position])
                        writer.add_paragraph(
                            describe_lookup(partition, position, transaction, probabilities)
                        )

            explainer = ModelExplainer(predictor)
            writer.add_figure(
                explainer.plot_feature_importance(
                    explainer.feature_importance(), title=f"Feature importance, {label}"
                ),
                f"importance_{model_name}.png",
                f"Feature importance, {label}"
            )
            if config['permutation_repeats'] > 0:
                permuted = explainer.permutation_importance(
                    partitions['validation'], config['permutation_repeats'], seed
                )
                writer.add_paragraph("Permutation importance (ROC AUC drop, validation), top 5:")
                writer.add_table(permuted.head(5).to_frame('importance'))
    except Exception:
        writer.discard()
        raise

    return writer.write()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='fraud-report',
        description='Evaluate a decision tree and a random forest on credit card transactions'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    run = subparsers.add_parser('run', help='Train both models and write the report')
    run.add_argument('--data', default=DATA_PATHS['raw_data'], help='Full dataset CSV')
    run.add_argument('--subset', default=None, help='Pre-drawn subset CSV; skips sampling')
    run.add_argument('--output-dir', default=DATA_PATHS['report_dir'])
    run.add_argument('--seed', type=int, default=MODEL_CONFIG['random_state'])

    prepare = subparsers.add_parser('prepare-subset', help='Draw the subset file from the full dataset')
    prepare.add_argument('--data', default=DATA_PATHS['raw_data'])
    prepare.add_argument('--output', default=DATA_PATHS['subset_data'])
    prepare.add_argument('--size', type=int, default=MODEL_CONFIG['sample_size'])
    prepare.add_argument('--seed', type=int, default=MODEL_CONFIG['random_state'])

    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    if args.command == 'run':
        configure_logging(Path(args.output_dir) / 'report.log')
    else:
        configure_logging()

    try:
        if args.command == 'run':
            run_report(args.data, args.subset, args.output_dir, {'random_state': args.seed})
        else:
            prepare_subset(args.data, args.output, args.size, args.seed)
    except FraudReportError as e:
        logger.error(f"Report run aborted: {str(e)}", exc_info=True)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
