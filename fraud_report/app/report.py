import matplotlib.pyplot as plt
import seaborn as sns
import pandas as pd
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

MODEL_LABELS = {
    'decision_tree': 'single decision tree',
    'random_forest': 'random forest'
}


def plot_roc_curve(evaluation, title):
    """ROC curve of one evaluation with the chance diagonal for reference"""
    fig, ax = plt.subplots(figsize=(6, 6))
    ax.plot(evaluation.roc.fpr, evaluation.roc.tpr, label=f'AUC = {evaluation.auc:.4f}')
    ax.plot([0, 1], [0, 1], linestyle='--', color='grey', label='Chance')
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1.02)
    ax.set_xlabel('False positive rate')
    ax.set_ylabel('True positive rate (fraud)')
    ax.set_title(title)
    ax.legend(loc='lower right')
    fig.tight_layout()
    return fig


def plot_confusion(confusion, title):
    fig, ax = plt.subplots(figsize=(5, 4))
    sns.heatmap(confusion.as_frame(), annot=True, fmt='d', cmap='viridis', cbar=False, ax=ax)
    ax.set_title(title)
    fig.tight_layout()
    return fig


def describe_evaluation(model_name, partition, evaluation, n_fraud, n_records):
    c = evaluation.confusion
    return (
        f"On the {partition} partition ({n_records} records, {n_fraud} of them fraud) the "
        f"{MODEL_LABELS.get(model_name, model_name)} caught {c.tp} of {c.tp + c.fn} fraudulent "
        f"transactions and wrongly flagged {c.fp} genuine ones, while {c.tn} genuine "
        f"transactions were passed correctly. The area under the ROC curve is "
        f"{evaluation.auc:.4f}."
    )


def describe_lookup(partition, position, transaction, probabilities):
    p_fraud, p_genuine = probabilities
    return (
        f"Record {position} of the {partition} partition (amount {transaction.amount:.2f}, "
        f"labeled {transaction.label}) has P(fraud) = {p_fraud:.4f} and "
        f"P(genuine) = {p_genuine:.4f}."
    )


class ReportWriter:
    """
    Collects prose, tables and figures in memory and writes them out together,
    so a failed run leaves no partial report behind.
    """

    def __init__(self, output_dir):
        self.output_dir = Path(output_dir)
        self.lines = []
        self.figures = {}

    def add_heading(self, text, level=2):
        self.lines.extend([f"{'#' * level} {text}", ''])

    def add_paragraph(self, text):
        self.lines.extend([text, ''])

    def add_table(self, frame: pd.DataFrame):
        self.lines.extend(['```', frame.to_string(), '```', ''])

    def add_figure(self, fig, filename, caption):
        self.figures[filename] = fig
        self.lines.extend([f"![{caption}]({filename})", ''])

    def write(self, filename='report.md') -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        try:
            for name, fig in self.figures.items():
                fig.savefig(self.output_dir / name)
        finally:
            for fig in self.figures.values():
                plt.close(fig)
            self.figures = {}

        report_path = self.output_dir / filename
        report_path.write_text('\n'.join(self.lines))
        logger.info(f"Report written to {report_path}")
        return report_path

    def discard(self):
        for fig in self.figures.values():
            plt.close(fig)
        self.figures = {}
