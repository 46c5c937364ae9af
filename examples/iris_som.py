"""
Example: SOM on the Iris Dataset.

This script demonstrates how to:
1. Load classical data (Iris) and scale it to [0, 1].
2. Wrap it in an ArrayReader with a label column.
3. Train a SOM and label its nodes by K-nearest neighbors.
4. Plot the U-matrix, label map and component planes.
"""

import sys
import numpy as np
import pandas as pd
from sklearn.datasets import load_iris
from sklearn.preprocessing import MinMaxScaler
import matplotlib.pyplot as plt

from somlib import ArrayReader, SOMConfig, train_som
from somlib.visualization import plot_component_planes, plot_label_map, plot_umatrix


def load_data() -> pd.DataFrame:
    iris = load_iris()
    # Node weights start in [0, 1), so scale the features to match
    scaled = MinMaxScaler().fit_transform(iris.data)
    frame = pd.DataFrame(scaled, columns=[n.replace(' (cm)', '') for n in iris.feature_names])
    frame['species'] = [iris.target_names[t] for t in iris.target]
    return frame


def main():
    print("Loading Iris dataset...")
    frame = load_data()
    print(f"Data shape: {frame.shape}")

    config = SOMConfig(
        width=10,
        height=10,
        initial_learning_rate=0.5,
        final_learning_rate=0.01,
        initial_radius=5.0,
        final_radius=0.5,
        epoch=20,
        k=5,
        feature_label='species',
        random_seed=42,
    )

    print("Training SOM...")
    som = train_som(ArrayReader(frame), config, verbose=True)

    data = som.dataset.to_matrix()
    print(f"Quantization error: {som.quantization_error():.4f}")
    print(f"Topographic error: {som.topographic_error():.4f}")

    labels = np.array(som.dataset.get_values('species'))
    predicted = np.array([som.node(*som.predict(v)).label for v in data])
    print(f"Node label accuracy: {np.mean(predicted == labels):.2%}")

    print("Visualizing results...")
    plot_umatrix(som).savefig("iris_som_umatrix.png")
    plot_label_map(som, title="Iris species by node").savefig("iris_som_labels.png")
    plot_component_planes(som).savefig("iris_som_components.png")
    plt.close('all')
    print("Done! Saved visualizations.")


if __name__ == "__main__":
    # Ensure src is in path if running from root
    sys.path.append("src")
    main()
