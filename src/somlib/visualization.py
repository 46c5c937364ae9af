"""
Visualization Module for somlib.

Static plots use matplotlib; the interactive variants need plotly.
Grids are drawn with ``x`` on the horizontal axis and ``y`` on the
vertical axis.
"""

from typing import Optional, Tuple
import numpy as np
import matplotlib.pyplot as plt

try:
    import plotly.graph_objects as go
    from plotly.subplots import make_subplots
    PLOTLY_AVAILABLE = True
except ImportError:
    PLOTLY_AVAILABLE = False


def _require_plotly() -> None:
    if not PLOTLY_AVAILABLE:
        raise ImportError("Plotly is required for interactive visualizations. "
                          "Install with: pip install somlib[interactive]")


def plot_umatrix(
    som: 'SelfOrganizingMap',
    ax: Optional[plt.Axes] = None,
    title: str = "U-Matrix"
) -> plt.Figure:
    """
    Plot the U-matrix of a trained map.

    Args:
        som: Trained SelfOrganizingMap.
        ax: Axes to draw on; a new figure when None.
        title: Axes title.

    Returns:
        The matplotlib Figure.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 6))
    else:
        fig = ax.figure

    umatrix = som.get_umatrix()
    im = ax.imshow(umatrix.T, cmap='viridis', origin='lower', interpolation='nearest')
    ax.set_title(title)
    ax.set_xlabel('Grid X')
    ax.set_ylabel('Grid Y')
    fig.colorbar(im, ax=ax, label='Average Distance')
    return fig


def plot_hit_map(
    som: 'SelfOrganizingMap',
    data: Optional[np.ndarray] = None,
    ax: Optional[plt.Axes] = None,
    title: str = "Hit Map"
) -> plt.Figure:
    """
    Plot how many vectors map to each node.

    With no data, uses the hit counts accumulated during training.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 6))
    else:
        fig = ax.figure

    hits = som.get_hit_map(data)
    im = ax.imshow(hits.T, cmap='hot', origin='lower', interpolation='nearest')
    ax.set_title(title)
    ax.set_xlabel('Grid X')
    ax.set_ylabel('Grid Y')
    fig.colorbar(im, ax=ax, label='Hit Count')
    return fig


def plot_label_map(
    som: 'SelfOrganizingMap',
    ax: Optional[plt.Axes] = None,
    title: str = "Node Labels",
    show_cluster_labels: bool = False
) -> plt.Figure:
    """
    Draw the U-matrix with each node's label written on it.

    Args:
        som: Trained and labelled SelfOrganizingMap.
        ax: Axes to draw on; a new figure when None.
        title: Axes title.
        show_cluster_labels: Write cluster letters instead of KNN labels.
    """
    fig = plot_umatrix(som, ax=ax, title=title)
    ax = fig.axes[0] if ax is None else ax

    for node in som.nodes():
        text = node.cluster_label if show_cluster_labels else node.label
        if not text:
            continue
        x, y = node.coordinate.as_tuple()
        ax.text(x, y, text, ha='center', va='center', fontsize=8, color='white')

    return fig


def plot_component_planes(
    som: 'SelfOrganizingMap',
    feature_names: Optional[list] = None,
    n_cols: int = 3,
    figsize: Optional[Tuple[int, int]] = None
) -> plt.Figure:
    """
    One heatmap per weight dimension.

    Args:
        som: Trained SelfOrganizingMap.
        feature_names: Titles for the planes; taken from the attached
            dataset's training features when None.
        n_cols: Planes per row.
        figsize: Figure size; scaled to the number of planes when None.
    """
    planes = som.get_component_planes()
    n_planes = planes.shape[0]

    if feature_names is None:
        if som.dataset is not None:
            feature_names = [f.feature_name for f in som.dataset.training_features]
        else:
            feature_names = [f'Dimension {i}' for i in range(n_planes)]

    n_cols = max(1, min(n_cols, n_planes))
    n_rows = (n_planes + n_cols - 1) // n_cols
    if figsize is None:
        figsize = (4 * n_cols, 3.5 * n_rows)

    fig, axes = plt.subplots(n_rows, n_cols, figsize=figsize, squeeze=False)
    for idx, ax in enumerate(axes.flat):
        if idx >= n_planes:
            ax.axis('off')
            continue
        im = ax.imshow(planes[idx].T, cmap='coolwarm', origin='lower')
        ax.set_title(feature_names[idx])
        fig.colorbar(im, ax=ax)

    fig.tight_layout()
    return fig


def create_interactive_umatrix(
    som: 'SelfOrganizingMap',
    data: Optional[np.ndarray] = None,
    labels: Optional[np.ndarray] = None,
    title: str = "Interactive U-Matrix"
) -> 'go.Figure':
    """
    Create an interactive U-matrix visualization using Plotly.

    Args:
        som: Trained SelfOrganizingMap.
        data: Optional data to project next to the U-matrix.
        labels: Optional labels for the projected points.
        title: Figure title.

    Returns:
        Plotly Figure object.
    """
    _require_plotly()

    umatrix = som.get_umatrix()

    fig = make_subplots(
        rows=1, cols=2,
        subplot_titles=('U-Matrix (Distance Map)', 'Data Projection'),
        horizontal_spacing=0.1
    )

    fig.add_trace(
        go.Heatmap(
            z=umatrix.T,
            colorscale='Viridis',
            colorbar=dict(title='Avg Distance', x=0.45),
            hovertemplate='X: %{x}<br>Y: %{y}<br>Distance: %{z:.4f}<extra></extra>'
        ),
        row=1, col=1
    )

    if data is not None:
        predictions = som.predict_batch(data)
        hit_map = som.get_hit_map(data)

        fig.add_trace(
            go.Heatmap(
                z=hit_map.T,
                colorscale='Hot',
                colorbar=dict(title='Hit Count', x=1.0),
                opacity=0.7,
                hovertemplate='X: %{x}<br>Y: %{y}<br>Hits: %{z}<extra></extra>'
            ),
            row=1, col=2
        )

        jitter = np.random.uniform(-0.25, 0.25, predictions.shape)
        points = predictions + jitter
        if labels is not None:
            labels = np.asarray(labels)
            for label in np.unique(labels):
                mask = labels == label
                fig.add_trace(
                    go.Scatter(
                        x=points[mask, 0],
                        y=points[mask, 1],
                        mode='markers',
                        marker=dict(size=9, line=dict(width=1, color='white')),
                        name=str(label),
                    ),
                    row=1, col=2
                )
        else:
            fig.add_trace(
                go.Scatter(
                    x=points[:, 0],
                    y=points[:, 1],
                    mode='markers',
                    marker=dict(size=8, color='blue', opacity=0.6),
                    name='Data',
                ),
                row=1, col=2
            )

    fig.update_layout(
        title=dict(text=title, x=0.5, font=dict(size=16)),
        showlegend=True,
        height=500,
        width=1000
    )
    for col in (1, 2):
        fig.update_xaxes(title_text='Grid X', row=1, col=col)
        fig.update_yaxes(title_text='Grid Y', row=1, col=col)

    return fig


def create_training_progress(
    som: 'SelfOrganizingMap',
    title: str = "Training Progress"
) -> 'go.Figure':
    """
    Plot the learning rate and radius recorded during training.

    Raises:
        ValueError: If the map has no training history.
    """
    _require_plotly()

    if not som.training_history:
        raise ValueError("No training history available. Train the SOM first.")

    iterations = [h['iteration'] for h in som.training_history]
    learning_rates = [h['learning_rate'] for h in som.training_history]
    radii = [h['radius'] for h in som.training_history]

    fig = make_subplots(
        rows=1, cols=2,
        subplot_titles=('Learning Rate', 'Neighborhood Radius')
    )
    fig.add_trace(
        go.Scatter(x=iterations, y=learning_rates, mode='lines+markers',
                   name='LR', line=dict(color='green', width=2)),
        row=1, col=1
    )
    fig.add_trace(
        go.Scatter(x=iterations, y=radii, mode='lines+markers',
                   name='Radius', line=dict(color='red', width=2)),
        row=1, col=2
    )

    fig.update_layout(
        title=dict(text=title, x=0.5),
        showlegend=False,
        height=400,
        width=900
    )
    fig.update_xaxes(title_text='Iteration', row=1, col=1)
    fig.update_xaxes(title_text='Iteration', row=1, col=2)
    fig.update_yaxes(title_text='Rate', row=1, col=1)
    fig.update_yaxes(title_text='Radius', row=1, col=2)

    return fig
